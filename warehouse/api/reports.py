from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from warehouse.config import Settings, get_settings
from warehouse.database import get_db
from warehouse.services.inventory_query_service import InventoryQueryService
from warehouse.schemas.common import ApiResponse
from warehouse.schemas.report import DashboardStats, LowStockProduct, StockByCategory
from warehouse.utils.cache import CacheService, get_cache_service

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get(
    "/stock-by-category",
    response_model=ApiResponse[List[StockByCategory]],
    summary="Stock by category",
    description="Product count, total units and total value per category. Cached in Redis."
)
def stock_by_category(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    service = InventoryQueryService(db, cache)
    return ApiResponse[List[StockByCategory]](data=service.stock_by_category())


@router.get(
    "/low-stock",
    response_model=ApiResponse[List[LowStockProduct]],
    summary="Low stock products",
    description="Products at or below the threshold, lowest stock first."
)
def low_stock(
    threshold: Optional[int] = Query(None, ge=0, description="Defaults to LOW_STOCK_THRESHOLD"),
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
):
    service = InventoryQueryService(db, cache)
    if threshold is None:
        threshold = settings.LOW_STOCK_THRESHOLD
    return ApiResponse[List[LowStockProduct]](data=service.low_stock(threshold))


@router.get(
    "/dashboard",
    response_model=ApiResponse[DashboardStats],
    summary="Dashboard statistics"
)
def dashboard(
    db: Session = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
    settings: Settings = Depends(get_settings),
):
    service = InventoryQueryService(db, cache)
    return ApiResponse[DashboardStats](data=service.dashboard_stats(settings.LOW_STOCK_THRESHOLD))
