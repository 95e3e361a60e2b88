import enum

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum, CheckConstraint, Index
from sqlalchemy.orm import relationship

from warehouse.database import Base, utcnow


class ChangeType(str, enum.Enum):
    """Kind of stock transition recorded in the ledger."""
    INCREASE = "increase"
    DECREASE = "decrease"
    ADJUSTMENT = "adjustment"


class InventoryHistory(Base):
    """
    Append-only ledger row describing one quantity transition of a product.

    Rows are never updated or deleted by the application; they go away only
    when the owning product is deleted (ON DELETE CASCADE).

    Attributes:
        id: Monotonic identifier, used as a recency tiebreak
        product_id: Product whose quantity changed
        change_type: increase, decrease or adjustment
        quantity_change: Signed delta applied to the product
        quantity_before: Product quantity before the transition
        quantity_after: Product quantity after the transition
        reason: Free-text annotation
        created_at: Insertion timestamp (UTC)
    """
    __tablename__ = "inventory_history"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(
        Integer,
        ForeignKey("products.id", onupdate="CASCADE", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    change_type = Column(
        Enum(
            ChangeType,
            name="inventory_change_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )
    quantity_change = Column(Integer, nullable=False)
    quantity_before = Column(Integer, nullable=False)
    quantity_after = Column(Integer, nullable=False)
    reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    __table_args__ = (
        CheckConstraint(
            'quantity_after = quantity_before + quantity_change',
            name='check_history_arithmetic',
        ),
        CheckConstraint('quantity_before >= 0', name='check_history_before_non_negative'),
        CheckConstraint('quantity_after >= 0', name='check_history_after_non_negative'),
        Index('ix_inventory_history_product_created', 'product_id', 'created_at'),
    )

    product = relationship("Product", back_populates="history")

    def __repr__(self):
        return (
            f"<InventoryHistory(id={self.id}, product_id={self.product_id}, "
            f"{self.change_type.value} {self.quantity_before}->{self.quantity_after})>"
        )
