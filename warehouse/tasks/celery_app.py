from celery import Celery

from warehouse.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "warehouse",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["warehouse.tasks.inventory_tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_track_started=True,
    task_time_limit=60,
    task_soft_time_limit=45,

    # Worker settings
    worker_prefetch_multiplier=1,

    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)
