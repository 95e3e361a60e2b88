import math
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Success envelope wrapping a single payload."""
    success: bool = True
    data: Optional[T] = None
    message: Optional[str] = None


class Pagination(BaseModel):
    """Pagination metadata attached to every list response."""
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


class PaginatedResponse(BaseModel, Generic[T]):
    """Success envelope wrapping one page of items."""
    success: bool = True
    data: List[T]
    pagination: Pagination


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Failure envelope."""
    success: bool = False
    error: ErrorBody
