from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session
from typing import Optional, List, Tuple
import logging

from warehouse.database import unit_of_work
from warehouse.models.category import Category
from warehouse.models.product import Product
from warehouse.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductWithCategory,
    ProductSortField,
    SortOrder,
)
from warehouse.utils.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class ProductService:
    """
    Service class for Product CRUD operations.

    This service handles:
    - Creating products with an initial quantity
    - Reading products (single and paginated)
    - Updating descriptive fields (name, code, price, category)
    - Deleting products, which cascades to their inventory history

    It never changes quantity after creation; that belongs to
    InventoryService.
    """

    SORT_COLUMNS = {
        ProductSortField.NAME: Product.name,
        ProductSortField.PRICE: Product.price,
        ProductSortField.QUANTITY: Product.quantity,
        ProductSortField.CREATED_AT: Product.created_at,
    }

    def __init__(self, db: Session):
        self.db = db

    def create(self, product_data: ProductCreate) -> Product:
        """
        Create a new product.

        No inventory history row is written for the initial quantity.

        Raises:
            NotFoundError: If the category doesn't exist
            ConflictError: If the product code is taken
        """
        with unit_of_work(self.db):
            self._require_category(product_data.category_id)
            if self.get_by_code(product_data.product_code):
                raise ConflictError(f"Product with code '{product_data.product_code}' already exists")

            product = Product(
                name=product_data.name,
                product_code=product_data.product_code,
                price=product_data.price,
                quantity=product_data.quantity,
                category_id=product_data.category_id,
            )
            self.db.add(product)
            self.db.flush()

        logger.info(f"Product #{product.id} ({product.product_code}) created with quantity {product.quantity}")
        return product

    def get_by_id(self, product_id: int) -> ProductWithCategory:
        """
        Get a product with its category name.

        Raises:
            NotFoundError: If the product doesn't exist
        """
        row = self.db.execute(
            select(Product, Category.name)
            .join(Category, Category.id == Product.category_id)
            .where(Product.id == product_id)
        ).first()

        if not row:
            raise NotFoundError("Product", product_id)

        product, category_name = row
        return self._with_category(product, category_name)

    def get_by_code(self, product_code: str) -> Optional[Product]:
        return self.db.execute(
            select(Product).where(Product.product_code == product_code)
        ).scalar_one_or_none()

    def get_all(
        self,
        page: int = 1,
        limit: int = 20,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        sort_by: ProductSortField = ProductSortField.CREATED_AT,
        sort_order: SortOrder = SortOrder.DESC,
    ) -> Tuple[List[ProductWithCategory], int]:
        """
        Get paginated list of products.

        Args:
            page: Page number (1-indexed)
            limit: Number of items per page
            category_id: Restrict to one category
            search: Case-insensitive match on name or product code
            sort_by: Column to sort on
            sort_order: asc or desc

        Returns:
            Tuple of (products list, total count)
        """
        conditions = []
        if category_id is not None:
            conditions.append(Product.category_id == category_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.product_code.ilike(pattern)))

        total = self.db.execute(
            select(func.count()).select_from(Product).where(*conditions)
        ).scalar_one()

        column = self.SORT_COLUMNS[sort_by]
        ordering = column.asc() if sort_order == SortOrder.ASC else column.desc()

        offset = (page - 1) * limit
        rows = self.db.execute(
            select(Product, Category.name)
            .join(Category, Category.id == Product.category_id)
            .where(*conditions)
            .order_by(ordering, Product.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()

        return [self._with_category(product, category_name) for product, category_name in rows], total

    def update(self, product_id: int, product_data: ProductUpdate) -> Product:
        """
        Update an existing product. Only provided fields are updated.

        Raises:
            NotFoundError: If the product or the new category doesn't exist
            ConflictError: If the new product code is taken
        """
        update_data = product_data.model_dump(exclude_unset=True)

        with unit_of_work(self.db):
            product = self.db.get(Product, product_id)
            if not product:
                raise NotFoundError("Product", product_id)

            if "category_id" in update_data:
                self._require_category(update_data["category_id"])

            new_code = update_data.get("product_code")
            if new_code and new_code != product.product_code and self.get_by_code(new_code):
                raise ConflictError(f"Product with code '{new_code}' already exists")

            for field, value in update_data.items():
                setattr(product, field, value)
            self.db.flush()

        return product

    def delete(self, product_id: int) -> None:
        """
        Delete a product and, through the foreign key cascade, its history.

        Raises:
            NotFoundError: If the product doesn't exist
        """
        with unit_of_work(self.db):
            product = self.db.get(Product, product_id)
            if not product:
                raise NotFoundError("Product", product_id)
            self.db.delete(product)

        logger.info(f"Product #{product_id} deleted")

    def _require_category(self, category_id: int) -> None:
        if self.db.get(Category, category_id) is None:
            raise NotFoundError("Category", category_id)

    @staticmethod
    def _with_category(product: Product, category_name: str) -> ProductWithCategory:
        return ProductWithCategory(
            id=product.id,
            name=product.name,
            product_code=product.product_code,
            price=product.price,
            quantity=product.quantity,
            category_id=product.category_id,
            created_at=product.created_at,
            updated_at=product.updated_at,
            category_name=category_name,
        )
