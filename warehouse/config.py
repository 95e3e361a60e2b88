from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from the environment and `.env`."""

    APP_NAME: str = "Warehouse Inventory Manager"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Database
    DATABASE_URL: str = "sqlite:///./warehouse.db"

    # Redis cache for report aggregates
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL: int = 300

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # CORS
    CORS_ORIGINS: List[str] = ["http://localhost:5173"]

    # Inventory policy
    LOW_STOCK_THRESHOLD: int = 10
    LOW_STOCK_ALERTS_ENABLED: bool = True
    LOG_ZERO_ADJUSTMENTS: bool = True

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
