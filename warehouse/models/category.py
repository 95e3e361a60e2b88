from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.orm import relationship

from warehouse.database import Base, utcnow


class Category(Base):
    """
    Category model grouping products.

    A category that still owns products cannot be deleted; the products
    foreign key is declared with ON DELETE RESTRICT.
    """
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    products = relationship("Product", back_populates="category", passive_deletes="all")

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"
