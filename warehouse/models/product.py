from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from warehouse.database import Base, utcnow


class Product(Base):
    """
    Product model representing a stocked item.

    Attributes:
        id: Unique identifier for the product
        name: Product name
        product_code: Unique, upper-cased product code
        price: Unit price (non-negative, two decimals)
        quantity: Units on hand (non-negative). Only the inventory ledger
            changes it once the product exists.
        category_id: Owning category
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False, index=True)
    product_code = Column(String(50), nullable=False, unique=True, index=True)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    category_id = Column(
        Integer,
        ForeignKey("categories.id", onupdate="CASCADE", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('quantity >= 0', name='check_quantity_non_negative'),
    )

    category = relationship("Category", back_populates="products")
    history = relationship(
        "InventoryHistory",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self):
        return f"<Product(id={self.id}, code='{self.product_code}', quantity={self.quantity})>"
