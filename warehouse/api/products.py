from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.orm import Session
from typing import Annotated, Optional

from warehouse.database import get_db
from warehouse.services.product_service import ProductService
from warehouse.schemas.common import ApiResponse, PaginatedResponse, Pagination
from warehouse.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductWithCategory,
    ProductSortField,
    SortOrder,
)
from warehouse.utils.cache import CacheService, get_cache_service

router = APIRouter(prefix="/products", tags=["Products"])

ProductId = Annotated[int, Path(gt=0, description="Product ID")]


@router.post(
    "/",
    response_model=ApiResponse[ProductResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product with an initial stock quantity."
)
def create_product(
    product_data: ProductCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    Create a new product.

    - **name**: Product name (required)
    - **product_code**: Unique code, stored upper-cased (required)
    - **price**: Unit price, non-negative with at most 2 decimals (required)
    - **category_id**: Owning category (required)
    - **quantity**: Initial stock, defaults to 0. Later changes go through /inventory.
    """
    service = ProductService(db)
    product = service.create(product_data)
    cache.invalidate_reports()
    return ApiResponse[ProductResponse](
        data=ProductResponse.model_validate(product),
        message="Product created successfully",
    )


@router.get(
    "/",
    response_model=PaginatedResponse[ProductWithCategory],
    summary="List all products",
    description="Get a paginated list of products with optional filters."
)
def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    category_id: Optional[int] = Query(None, gt=0, description="Filter by category"),
    search: Optional[str] = Query(None, description="Search by product name or code"),
    sort_by: ProductSortField = Query(ProductSortField.CREATED_AT, description="Sort column"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="Sort direction"),
    db: Session = Depends(get_db),
):
    """Get paginated list of products."""
    service = ProductService(db)
    products, total = service.get_all(
        page=page,
        limit=limit,
        category_id=category_id,
        search=search.strip() if search else None,
        sort_by=sort_by,
        sort_order=sort_order,
    )

    return PaginatedResponse[ProductWithCategory](
        data=products,
        pagination=Pagination.build(page, limit, total),
    )


@router.get(
    "/{product_id}",
    response_model=ApiResponse[ProductWithCategory],
    summary="Get product by ID"
)
def get_product(product_id: ProductId, db: Session = Depends(get_db)):
    service = ProductService(db)
    return ApiResponse[ProductWithCategory](data=service.get_by_id(product_id))


@router.put(
    "/{product_id}",
    response_model=ApiResponse[ProductResponse],
    summary="Update a product",
    description="Update product details. Quantity can only change through the inventory endpoints."
)
def update_product(
    product_id: ProductId,
    product_data: ProductUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    Update a product.

    Partial updates are supported - only include fields you want to change.
    Cached reports are invalidated after update.
    """
    service = ProductService(db)
    product = service.update(product_id, product_data)
    cache.invalidate_reports()
    return ApiResponse[ProductResponse](
        data=ProductResponse.model_validate(product),
        message="Product updated successfully",
    )


@router.delete(
    "/{product_id}",
    response_model=ApiResponse[None],
    summary="Delete a product",
    description="Delete a product together with its inventory history."
)
def delete_product(
    product_id: ProductId,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """Delete a product."""
    service = ProductService(db)
    service.delete(product_id)
    cache.invalidate_reports()
    return ApiResponse[None](message="Product deleted successfully")
