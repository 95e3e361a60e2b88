from fastapi import APIRouter, Depends, Path, Query, status
from fastapi.responses import JSONResponse
from kombu.exceptions import OperationalError
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Annotated, Optional
import logging

from warehouse.config import Settings, get_settings
from warehouse.database import get_db
from warehouse.models.inventory_history import ChangeType, InventoryHistory
from warehouse.services.inventory_service import InventoryService
from warehouse.services.inventory_query_service import InventoryQueryService
from warehouse.schemas.common import ApiResponse, PaginatedResponse, Pagination
from warehouse.schemas.inventory import (
    StockChange,
    StockAdjust,
    InventoryHistoryFilters,
    InventoryHistoryResponse,
    InventoryHistoryWithProduct,
)
from warehouse.tasks.inventory_tasks import check_low_stock
from warehouse.utils.cache import CacheService, get_cache_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/inventory", tags=["Inventory"])


def _after_commit(entry: Optional[InventoryHistory], cache: CacheService, settings: Settings) -> None:
    """
    Side effects of a committed transition: drop cached reports and, when
    stock ended at or below the threshold, enqueue a low-stock alert.

    The transition is already durable here; failures are logged only.
    """
    cache.invalidate_reports()

    if entry is None or not settings.LOW_STOCK_ALERTS_ENABLED:
        return
    if entry.change_type == ChangeType.INCREASE or entry.quantity_after > settings.LOW_STOCK_THRESHOLD:
        return

    try:
        check_low_stock.delay(entry.product_id, settings.LOW_STOCK_THRESHOLD)
    except OperationalError as e:
        logger.error(f"Could not enqueue low stock check for product #{entry.product_id}: {e}")


def _history_page(
    service: InventoryQueryService,
    filters: InventoryHistoryFilters,
) -> PaginatedResponse[InventoryHistoryWithProduct]:
    entries, total = service.list_history(filters)
    return PaginatedResponse[InventoryHistoryWithProduct](
        data=entries,
        pagination=Pagination.build(filters.page, filters.limit, total),
    )


@router.get(
    "/history",
    response_model=PaginatedResponse[InventoryHistoryWithProduct],
    summary="List inventory history",
    description="Paginated ledger rows across all products, newest first."
)
def list_history(
    product_id: Optional[int] = Query(None, gt=0, description="Restrict to one product"),
    change_type: Optional[ChangeType] = Query(None, description="increase, decrease or adjustment"),
    start_date: Optional[datetime] = Query(None, description="Inclusive lower bound on created_at (ISO-8601)"),
    end_date: Optional[datetime] = Query(None, description="Inclusive upper bound on created_at (ISO-8601)"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """
    Get ledger rows for every product.

    Ordered by created_at descending, ties broken by id descending.
    An unknown product_id yields 404, same as the per-product endpoint.
    """
    filters = InventoryHistoryFilters(
        product_id=product_id,
        change_type=change_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return _history_page(InventoryQueryService(db, cache), filters)


@router.post(
    "/{product_id}/increase",
    response_model=ApiResponse[InventoryHistoryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Increase stock",
    description="Add units to a product and record the change in the ledger."
)
def increase_stock(
    product_id: Annotated[int, Path(gt=0, description="Product ID")],
    body: StockChange,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
):
    """
    Increase stock.

    - **quantity**: Units to add, positive integer (required)
    - **reason**: Free-text annotation (optional)
    """
    service = InventoryService(db, log_zero_adjustments=settings.LOG_ZERO_ADJUSTMENTS)
    entry = service.increase(product_id, body.quantity, body.reason)
    _after_commit(entry, cache, settings)

    return ApiResponse[InventoryHistoryResponse](
        data=InventoryHistoryResponse.model_validate(entry),
        message="Stock increased successfully",
    )


@router.post(
    "/{product_id}/decrease",
    response_model=ApiResponse[InventoryHistoryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Decrease stock",
    description="""
    Remove units from a product and record the change in the ledger.

    Concurrent decreases on the same product are serialized by a row lock,
    so stock can never be oversold. A decrease larger than the stock on hand
    fails with 422 INSUFFICIENT_STOCK and writes nothing.
    """
)
def decrease_stock(
    product_id: Annotated[int, Path(gt=0, description="Product ID")],
    body: StockChange,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
):
    """
    Decrease stock.

    - **quantity**: Units to remove, positive integer (required)
    - **reason**: Free-text annotation (optional)
    """
    service = InventoryService(db, log_zero_adjustments=settings.LOG_ZERO_ADJUSTMENTS)
    entry = service.decrease(product_id, body.quantity, body.reason)
    _after_commit(entry, cache, settings)

    return ApiResponse[InventoryHistoryResponse](
        data=InventoryHistoryResponse.model_validate(entry),
        message="Stock decreased successfully",
    )


@router.post(
    "/{product_id}/adjust",
    response_model=ApiResponse[InventoryHistoryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Adjust stock",
    description="Set a product's quantity to an absolute value and record the change."
)
def adjust_stock(
    product_id: Annotated[int, Path(gt=0, description="Product ID")],
    body: StockAdjust,
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
):
    """
    Adjust stock to an absolute quantity.

    - **new_quantity**: Target quantity, integer >= 0 (required)
    - **reason**: Free-text annotation (optional)

    A zero-delta adjustment is logged unless LOG_ZERO_ADJUSTMENTS is off;
    then the response is 200 with no data.
    """
    service = InventoryService(db, log_zero_adjustments=settings.LOG_ZERO_ADJUSTMENTS)
    entry = service.adjust(product_id, body.new_quantity, body.reason)
    _after_commit(entry, cache, settings)

    if entry is None:
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content=ApiResponse[InventoryHistoryResponse](
                data=None,
                message="Quantity unchanged; adjustment not recorded",
            ).model_dump(mode="json"),
        )

    return ApiResponse[InventoryHistoryResponse](
        data=InventoryHistoryResponse.model_validate(entry),
        message="Stock adjusted successfully",
    )


@router.get(
    "/{product_id}/history",
    response_model=PaginatedResponse[InventoryHistoryWithProduct],
    summary="Get product inventory history",
    description="Paginated ledger rows for one product, newest first."
)
def get_product_history(
    product_id: Annotated[int, Path(gt=0, description="Product ID")],
    change_type: Optional[ChangeType] = Query(None, description="increase, decrease or adjustment"),
    start_date: Optional[datetime] = Query(None, description="Inclusive lower bound on created_at (ISO-8601)"),
    end_date: Optional[datetime] = Query(None, description="Inclusive upper bound on created_at (ISO-8601)"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """Get ledger rows for one product. 404 if the product doesn't exist."""
    filters = InventoryHistoryFilters(
        product_id=product_id,
        change_type=change_type,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )
    return _history_page(InventoryQueryService(db, cache), filters)
