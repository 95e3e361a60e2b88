from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
import logging
import time
import uuid

from warehouse.config import get_settings
from warehouse.database import engine, Base
from warehouse import models  # noqa: F401  (registers tables on Base.metadata)
from warehouse.api import categories, products, inventory, reports, health
from warehouse.schemas.common import ErrorBody, ErrorResponse
from warehouse.utils.errors import AppError

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up application...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    engine.dispose()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    description="""
    Warehouse inventory manager: categories, products and a stock ledger.

    - **Categories & Products**: CRUD for the catalogue
    - **Inventory Ledger**: increase, decrease and adjust stock; every change
      appends an immutable history row in the same transaction
    - **Reports**: stock by category, low stock and dashboard totals (cached in Redis)
    - **Alerts**: Celery workers raise low-stock alerts after stock drops

    ## Concurrency
    Quantity changes lock the product row (`SELECT ... FOR UPDATE`), so
    concurrent requests on the same product are applied one after another
    and stock never goes negative.
    """,
    version=settings.APP_VERSION,
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logger(request: Request, call_next):
    """Tag every request with an X-Request-ID and log its outcome."""
    request_id = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.perf_counter()

    response = await call_next(request)

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request_id
    logger.info(
        f"[{request_id}] {request.method} {request.url.path} -> {response.status_code} ({duration_ms:.1f}ms)"
    )
    return response


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = ErrorResponse(error=ErrorBody(code=code, message=message, details=details))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _validation_details(errors: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Group pydantic errors by field path, dropping the body/query/path prefix."""
    details: Dict[str, List[str]] = {}
    for err in errors:
        loc = [str(part) for part in err.get("loc", ())]
        if loc and loc[0] in ("body", "query", "path"):
            loc = loc[1:]
        details.setdefault(".".join(loc) or "request", []).append(err.get("msg", "Invalid value"))
    return details


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error_response(exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _error_response(400, "VALIDATION_ERROR", "Validation failed", _validation_details(exc.errors()))


@app.exception_handler(PydanticValidationError)
async def pydantic_validation_handler(request: Request, exc: PydanticValidationError):
    return _error_response(400, "VALIDATION_ERROR", "Validation failed", _validation_details(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        return _error_response(404, "NOT_FOUND", f"Route {request.method} {request.url.path} not found")
    if exc.status_code >= 500:
        code = "INTERNAL_ERROR"
    elif exc.status_code == 409:
        code = "CONFLICT"
    else:
        code = "VALIDATION_ERROR"
    return _error_response(exc.status_code, code, str(exc.detail))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return the error envelope for unhandled exceptions."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    message = "An unexpected error occurred" if settings.is_production else str(exc)
    return _error_response(500, "INTERNAL_ERROR", message)


# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(categories.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(inventory.router, prefix="/api/v1")
app.include_router(reports.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health"
    }
