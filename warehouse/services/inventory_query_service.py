from sqlalchemy import select, func
from sqlalchemy.orm import Session
from typing import List, Tuple
import logging

from warehouse.models.category import Category
from warehouse.models.product import Product
from warehouse.models.inventory_history import InventoryHistory
from warehouse.schemas.inventory import (
    InventoryHistoryFilters,
    InventoryHistoryResponse,
    InventoryHistoryWithProduct,
)
from warehouse.schemas.report import DashboardStats, LowStockProduct, StockByCategory
from warehouse.utils.cache import CacheService, REPORT_CACHE_PREFIX
from warehouse.utils.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class InventoryQueryService:
    """
    Read-only access to the inventory ledger and stock aggregates.

    Nothing here takes locks or writes. Aggregates are cached in Redis under
    the 'report' prefix; every write path invalidates that prefix, so a
    cached report is at most one mutation stale.
    """

    def __init__(self, db: Session, cache: CacheService):
        self.db = db
        self.cache = cache

    def list_history(self, filters: InventoryHistoryFilters) -> Tuple[List[InventoryHistoryWithProduct], int]:
        """
        Get one page of ledger rows, newest first.

        Rows are ordered by created_at descending, ties broken by id
        descending. A product_id that doesn't exist raises NotFoundError on
        every call path.

        Args:
            filters: Product, change type, date range and pagination

        Returns:
            Tuple of (entries for the page, total matching rows)
        """
        if filters.start_date and filters.end_date and filters.start_date > filters.end_date:
            raise ValidationError(
                "start_date must not be after end_date",
                {"start_date": ["Must be before or equal to end_date"]},
            )

        if filters.product_id is not None and self.db.get(Product, filters.product_id) is None:
            raise NotFoundError("Product", filters.product_id)

        conditions = []
        if filters.product_id is not None:
            conditions.append(InventoryHistory.product_id == filters.product_id)
        if filters.change_type is not None:
            conditions.append(InventoryHistory.change_type == filters.change_type)
        if filters.start_date is not None:
            conditions.append(InventoryHistory.created_at >= filters.start_date)
        if filters.end_date is not None:
            conditions.append(InventoryHistory.created_at <= filters.end_date)

        total = self.db.execute(
            select(func.count()).select_from(InventoryHistory).where(*conditions)
        ).scalar_one()

        stmt = (
            select(InventoryHistory, Product.name, Product.product_code)
            .join(Product, Product.id == InventoryHistory.product_id)
            .where(*conditions)
            .order_by(InventoryHistory.created_at.desc(), InventoryHistory.id.desc())
            .offset(filters.offset)
            .limit(filters.limit)
        )

        entries = [
            InventoryHistoryWithProduct(
                **InventoryHistoryResponse.model_validate(entry).model_dump(),
                product_name=product_name,
                product_code=product_code,
            )
            for entry, product_name, product_code in self.db.execute(stmt).all()
        ]
        return entries, total

    def stock_by_category(self) -> List[StockByCategory]:
        """
        Stock totals for every category, including empty ones.

        Empty categories report zero products, zero stock and zero value.
        """
        cached = self.cache.get(REPORT_CACHE_PREFIX, "stock_by_category")
        if cached is not None:
            return [StockByCategory(**row) for row in cached]

        stmt = (
            select(
                Category.id.label("category_id"),
                Category.name.label("category_name"),
                func.count(Product.id).label("total_products"),
                func.coalesce(func.sum(Product.quantity), 0).label("total_stock"),
                func.coalesce(func.sum(Product.quantity * Product.price), 0).label("total_value"),
            )
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id, Category.name)
            .order_by(Category.name.asc())
        )
        report = [StockByCategory(**row._mapping) for row in self.db.execute(stmt).all()]

        self.cache.set(REPORT_CACHE_PREFIX, "stock_by_category", [r.model_dump() for r in report])
        return report

    def low_stock(self, threshold: int) -> List[LowStockProduct]:
        """Products with quantity <= threshold, lowest stock first, then by name."""
        if threshold < 0:
            raise ValidationError("Threshold must be non-negative", {"threshold": ["Must be >= 0"]})

        cache_key = f"low_stock:{threshold}"
        cached = self.cache.get(REPORT_CACHE_PREFIX, cache_key)
        if cached is not None:
            return [LowStockProduct(**row) for row in cached]

        stmt = (
            select(
                Product.id,
                Product.name,
                Product.product_code,
                Product.quantity,
                Category.name.label("category_name"),
            )
            .join(Category, Category.id == Product.category_id)
            .where(Product.quantity <= threshold)
            .order_by(Product.quantity.asc(), Product.name.asc())
        )
        products = [LowStockProduct(**row._mapping) for row in self.db.execute(stmt).all()]

        self.cache.set(REPORT_CACHE_PREFIX, cache_key, [p.model_dump() for p in products])
        return products

    def dashboard_stats(self, low_stock_threshold: int) -> DashboardStats:
        """Headline numbers for the dashboard."""
        cache_key = f"dashboard:{low_stock_threshold}"
        cached = self.cache.get(REPORT_CACHE_PREFIX, cache_key)
        if cached is not None:
            return DashboardStats(**cached)

        stmt = select(
            select(func.count(Product.id)).scalar_subquery().label("total_products"),
            select(func.count(Category.id)).scalar_subquery().label("total_categories"),
            select(func.coalesce(func.sum(Product.quantity), 0)).scalar_subquery().label("total_stock"),
            select(func.coalesce(func.sum(Product.quantity * Product.price), 0))
            .scalar_subquery()
            .label("total_value"),
            select(func.count(Product.id))
            .where(Product.quantity <= low_stock_threshold)
            .scalar_subquery()
            .label("low_stock_count"),
        )
        stats = DashboardStats(**self.db.execute(stmt).one()._mapping)

        self.cache.set(REPORT_CACHE_PREFIX, cache_key, stats.model_dump())
        return stats
