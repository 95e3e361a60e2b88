from sqlalchemy import select, func
from sqlalchemy.orm import Session
from typing import List, Optional

from warehouse.database import unit_of_work
from warehouse.models.category import Category
from warehouse.models.product import Product
from warehouse.schemas.category import CategoryCreate, CategoryUpdate, CategoryWithProductCount
from warehouse.utils.errors import ConflictError, NotFoundError


class CategoryService:
    """
    Service class for Category CRUD operations.

    Categories are referenced by products; a category that still owns
    products cannot be deleted.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_all(self) -> List[CategoryWithProductCount]:
        """Get every category with the number of products it owns, by name."""
        stmt = (
            select(Category, func.count(Product.id).label("product_count"))
            .outerjoin(Product, Product.category_id == Category.id)
            .group_by(Category.id)
            .order_by(Category.name.asc())
        )
        return [
            CategoryWithProductCount.model_validate(category).model_copy(
                update={"product_count": product_count}
            )
            for category, product_count in self.db.execute(stmt).all()
        ]

    def get_by_id(self, category_id: int) -> Category:
        category = self.db.get(Category, category_id)
        if not category:
            raise NotFoundError("Category", category_id)
        return category

    def get_by_name(self, name: str) -> Optional[Category]:
        return self.db.execute(select(Category).where(Category.name == name)).scalar_one_or_none()

    def create(self, category_data: CategoryCreate) -> Category:
        """
        Create a new category.

        Raises:
            ConflictError: If a category with the same name exists
        """
        with unit_of_work(self.db):
            if self.get_by_name(category_data.name):
                raise ConflictError(f"Category with name '{category_data.name}' already exists")

            category = Category(name=category_data.name, description=category_data.description)
            self.db.add(category)
            self.db.flush()

        return category

    def update(self, category_id: int, category_data: CategoryUpdate) -> Category:
        """
        Update a category. Only provided fields are changed.

        Raises:
            NotFoundError: If the category doesn't exist
            ConflictError: If the new name is taken
        """
        update_data = category_data.model_dump(exclude_unset=True)

        with unit_of_work(self.db):
            category = self.get_by_id(category_id)

            new_name = update_data.get("name")
            if new_name and new_name != category.name and self.get_by_name(new_name):
                raise ConflictError(f"Category with name '{new_name}' already exists")

            for field, value in update_data.items():
                setattr(category, field, value)
            self.db.flush()

        return category

    def delete(self, category_id: int) -> None:
        """
        Delete a category.

        Raises:
            NotFoundError: If the category doesn't exist
            ConflictError: If the category still has products
        """
        with unit_of_work(self.db):
            category = self.get_by_id(category_id)

            product_count = self.db.execute(
                select(func.count(Product.id)).where(Product.category_id == category_id)
            ).scalar_one()
            if product_count > 0:
                raise ConflictError(
                    f"Cannot delete category '{category.name}': it still has {product_count} product(s)"
                )

            self.db.delete(category)
