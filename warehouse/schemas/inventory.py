from pydantic import BaseModel, Field, ConfigDict, model_validator
from datetime import datetime, timezone
from typing import Optional

from warehouse.models.inventory_history import ChangeType


class StockChange(BaseModel):
    """Body of an increase or decrease request."""
    model_config = ConfigDict(str_strip_whitespace=True)

    quantity: int = Field(..., gt=0, strict=True, description="Units to add or remove")
    reason: Optional[str] = Field(None, max_length=500, description="Free-text annotation")


class StockAdjust(BaseModel):
    """Body of an adjust request: sets an absolute quantity."""
    model_config = ConfigDict(str_strip_whitespace=True)

    new_quantity: int = Field(..., ge=0, strict=True, description="Target quantity")
    reason: Optional[str] = Field(None, max_length=500, description="Free-text annotation")


class InventoryHistoryResponse(BaseModel):
    """One ledger row."""
    id: int
    product_id: int
    change_type: ChangeType
    quantity_change: int
    quantity_before: int
    quantity_after: int
    reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InventoryHistoryWithProduct(InventoryHistoryResponse):
    """Ledger row joined with the owning product for display."""
    product_name: str
    product_code: str


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class InventoryHistoryFilters(BaseModel):
    """
    Filters for ledger listings.

    Date bounds are inclusive. Naive datetimes are read as UTC.
    """
    product_id: Optional[int] = Field(None, gt=0)
    change_type: Optional[ChangeType] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)

    @model_validator(mode="after")
    def normalize_dates(self):
        self.start_date = _as_utc(self.start_date)
        self.end_date = _as_utc(self.end_date)
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit
