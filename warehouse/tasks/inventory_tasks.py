import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from warehouse.config import get_settings
from warehouse.database import SessionLocal
from warehouse.models.product import Product
from warehouse.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="check_low_stock", max_retries=3)
def check_low_stock(self, product_id: int, threshold: Optional[int] = None) -> dict:
    """
    Background task raising a low-stock alert for one product.

    Enqueued by the inventory API after a decrease or adjustment leaves the
    product at or below the threshold. The product is re-read here, so an
    alert reflects the quantity at processing time, not at enqueue time.

    Args:
        product_id: Product to check
        threshold: Alert threshold (defaults to LOW_STOCK_THRESHOLD)

    Returns:
        Dictionary describing the outcome
    """
    if threshold is None:
        threshold = get_settings().LOW_STOCK_THRESHOLD

    db = SessionLocal()

    try:
        product = db.get(Product, product_id)

        if not product:
            logger.info(f"Low stock check skipped: product #{product_id} no longer exists")
            return {"status": "not_found", "product_id": product_id}

        if product.quantity > threshold:
            return {"status": "ok", "product_id": product_id, "quantity": product.quantity}

        level = "critical" if product.quantity == 0 else "warning"
        message = (
            f"{product.name} ({product.product_code}) stock is "
            f"{'OUT' if level == 'critical' else 'LOW'}: {product.quantity} (threshold: {threshold})"
        )
        logger.warning(f"Low stock alert: {message}")

        return {
            "status": "alert",
            "level": level,
            "product_id": product_id,
            "quantity": product.quantity,
            "threshold": threshold,
            "message": message,
        }

    except SQLAlchemyError as e:
        logger.error(f"Error checking stock for product #{product_id}: {e}")
        raise self.retry(exc=e, countdown=30)

    finally:
        db.close()
