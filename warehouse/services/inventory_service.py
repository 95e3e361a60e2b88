from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Callable, Optional
import logging

from warehouse.database import unit_of_work
from warehouse.models.product import Product
from warehouse.models.inventory_history import ChangeType, InventoryHistory
from warehouse.utils.errors import (
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class InventoryService:
    """
    Inventory ledger: the only code path that changes Product.quantity.

    Every operation reads the product, computes the new quantity, writes it
    and appends one InventoryHistory row inside a single transaction, so the
    stored quantity always equals the quantity_after of the latest row.

    CONCURRENCY STRATEGY:
    =====================
    The product row is read with SELECT ... FOR UPDATE. On PostgreSQL this
    takes a row-level lock: a second transition on the same product blocks
    until the first commits and then reads the committed quantity. On SQLite
    unit_of_work opens the transaction with BEGIN IMMEDIATE (see
    warehouse.database), which serializes writers at the database level.
    Transitions on different products never share a lock.

    The service holds no in-process locks and never retries. A failure at
    any step rolls back both the quantity write and the history row.
    """

    def __init__(self, db: Session, log_zero_adjustments: bool = True):
        self.db = db
        self.log_zero_adjustments = log_zero_adjustments

    def increase(self, product_id: int, amount: int, reason: Optional[str] = None) -> InventoryHistory:
        """
        Add stock to a product.

        Args:
            product_id: Product to change
            amount: Positive number of units to add
            reason: Optional annotation stored on the ledger row

        Returns:
            The created ledger row

        Raises:
            ValidationError: If amount is not a positive integer
            NotFoundError: If the product doesn't exist
        """
        self._require_positive(amount, "quantity")
        return self._apply(
            product_id,
            ChangeType.INCREASE,
            lambda before: before + amount,
            reason,
        )

    def decrease(self, product_id: int, amount: int, reason: Optional[str] = None) -> InventoryHistory:
        """
        Remove stock from a product.

        Raises:
            ValidationError: If amount is not a positive integer
            NotFoundError: If the product doesn't exist
            InsufficientStockError: If fewer than `amount` units are on hand.
                Nothing is written in that case.
        """
        self._require_positive(amount, "quantity")

        def compute(before: int) -> int:
            if before - amount < 0:
                raise InsufficientStockError(available=before, requested=amount)
            return before - amount

        return self._apply(product_id, ChangeType.DECREASE, compute, reason)

    def adjust(self, product_id: int, new_quantity: int, reason: Optional[str] = None) -> Optional[InventoryHistory]:
        """
        Set a product's quantity to an absolute value.

        A zero-delta adjustment is logged unless the service was built with
        log_zero_adjustments=False, in which case nothing is written and
        None is returned.

        Raises:
            ValidationError: If new_quantity is not a non-negative integer
            NotFoundError: If the product doesn't exist
        """
        if not _is_int(new_quantity) or new_quantity < 0:
            raise ValidationError(
                "New quantity must be a non-negative integer",
                {"new_quantity": ["Must be an integer greater than or equal to 0"]},
            )
        return self._apply(
            product_id,
            ChangeType.ADJUSTMENT,
            lambda before: new_quantity,
            reason,
        )

    def _require_positive(self, amount, field: str) -> None:
        if not _is_int(amount) or amount <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                {field: ["Must be an integer greater than 0"]},
            )

    def _lock_product(self, product_id: int) -> Product:
        """Read the product row with a write lock, bypassing any stale identity-map copy."""
        stmt = (
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        product = self.db.execute(stmt).scalar_one_or_none()
        if product is None:
            raise NotFoundError("Product", product_id)
        return product

    def _apply(
        self,
        product_id: int,
        change_type: ChangeType,
        compute: Callable[[int], int],
        reason: Optional[str],
    ) -> Optional[InventoryHistory]:
        """
        Run one read-modify-write-append transition.

        Algorithm:
        1. Begin a unit of work
        2. SELECT product FOR UPDATE
        3. Compute quantity_after (may raise a business error)
        4. Write the product quantity
        5. Append the ledger row and flush it
        6. Commit (releases the lock)

        The returned row is not re-read after commit, so no transaction is
        left open on the session.
        """
        entry = None
        try:
            with unit_of_work(self.db):
                product = self._lock_product(product_id)

                before = product.quantity
                after = compute(before)
                change = after - before

                if change == 0 and change_type is ChangeType.ADJUSTMENT and not self.log_zero_adjustments:
                    logger.info(f"Skipping zero adjustment for product #{product_id} (quantity {before})")
                    return None

                product.quantity = after
                entry = InventoryHistory(
                    product_id=product_id,
                    change_type=change_type,
                    quantity_change=change,
                    quantity_before=before,
                    quantity_after=after,
                    reason=reason,
                )
                self.db.add(entry)
                # Assigns id and created_at before commit
                self.db.flush()

        except InsufficientStockError as e:
            logger.warning(f"Rejected decrease on product #{product_id}: {e.message}")
            raise
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Store error during {change_type.value} on product #{product_id}: {e}")
            raise

        logger.info(
            f"Product #{product_id} {change_type.value}: "
            f"{entry.quantity_before} -> {entry.quantity_after} (history #{entry.id})"
        )
        return entry
