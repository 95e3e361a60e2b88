from enum import Enum
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator
from datetime import datetime
from typing import Optional


class ProductSortField(str, Enum):
    NAME = "name"
    PRICE = "price"
    QUANTITY = "quantity"
    CREATED_AT = "created_at"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


class ProductFields(BaseModel):
    """Shared normalization for product write schemas."""
    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("product_code", check_fields=False)
    @classmethod
    def upper_code(cls, value: Optional[str]) -> Optional[str]:
        return value.upper() if value is not None else value

    @field_validator("price", check_fields=False)
    @classmethod
    def two_decimals(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and round(value, 2) != value:
            raise ValueError("Price can have at most 2 decimal places")
        return value


class ProductCreate(ProductFields):
    """
    Schema for creating a new product.

    The initial quantity is recorded as-is; every later change goes through
    the inventory endpoints.
    """
    name: str = Field(..., min_length=1, max_length=200, description="Product name")
    product_code: str = Field(..., min_length=1, max_length=50, description="Unique product code")
    price: float = Field(..., ge=0, description="Unit price (non-negative)")
    category_id: int = Field(..., gt=0, strict=True, description="Owning category")
    quantity: int = Field(default=0, ge=0, strict=True, description="Initial stock")


class ProductUpdate(ProductFields):
    """Schema for updating a product. Quantity is not updatable here."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    name: Optional[str] = Field(None, min_length=1, max_length=200)
    product_code: Optional[str] = Field(None, min_length=1, max_length=50)
    price: Optional[float] = Field(None, ge=0)
    category_id: Optional[int] = Field(None, gt=0, strict=True)

    @model_validator(mode="after")
    def check_not_empty(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        nulls = sorted(field for field in self.model_fields_set if getattr(self, field) is None)
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
        return self


class ProductResponse(BaseModel):
    """Schema for product response including all fields."""
    id: int
    name: str
    product_code: str
    price: float
    quantity: int
    category_id: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProductWithCategory(ProductResponse):
    category_name: str
