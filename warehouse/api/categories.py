from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session
from typing import Annotated, List

from warehouse.database import get_db
from warehouse.services.category_service import CategoryService
from warehouse.schemas.common import ApiResponse
from warehouse.schemas.category import (
    CategoryCreate,
    CategoryUpdate,
    CategoryResponse,
    CategoryWithProductCount,
)
from warehouse.utils.cache import CacheService, get_cache_service

router = APIRouter(prefix="/categories", tags=["Categories"])

CategoryId = Annotated[int, Path(gt=0, description="Category ID")]


@router.get(
    "/",
    response_model=ApiResponse[List[CategoryWithProductCount]],
    summary="List all categories",
    description="Every category with the number of products it owns."
)
def list_categories(db: Session = Depends(get_db)):
    service = CategoryService(db)
    return ApiResponse[List[CategoryWithProductCount]](data=service.get_all())


@router.post(
    "/",
    response_model=ApiResponse[CategoryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Create a category"
)
def create_category(
    category_data: CategoryCreate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    Create a new category.

    - **name**: Unique category name (required)
    - **description**: Optional description
    """
    service = CategoryService(db)
    category = service.create(category_data)
    cache.invalidate_reports()
    return ApiResponse[CategoryResponse](
        data=CategoryResponse.model_validate(category),
        message="Category created successfully",
    )


@router.get(
    "/{category_id}",
    response_model=ApiResponse[CategoryResponse],
    summary="Get category by ID"
)
def get_category(category_id: CategoryId, db: Session = Depends(get_db)):
    service = CategoryService(db)
    return ApiResponse[CategoryResponse](data=CategoryResponse.model_validate(service.get_by_id(category_id)))


@router.put(
    "/{category_id}",
    response_model=ApiResponse[CategoryResponse],
    summary="Update a category",
    description="Update category details. Only provided fields will be updated."
)
def update_category(
    category_id: CategoryId,
    category_data: CategoryUpdate,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    service = CategoryService(db)
    category = service.update(category_id, category_data)
    cache.invalidate_reports()
    return ApiResponse[CategoryResponse](
        data=CategoryResponse.model_validate(category),
        message="Category updated successfully",
    )


@router.delete(
    "/{category_id}",
    response_model=ApiResponse[None],
    summary="Delete a category",
    description="Delete a category. Fails with 409 while it still owns products."
)
def delete_category(
    category_id: CategoryId,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    service = CategoryService(db)
    service.delete(category_id)
    cache.invalidate_reports()
    return ApiResponse[None](message="Category deleted successfully")
