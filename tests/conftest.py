import os

# Point the application at throwaway resources before it is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from warehouse.main import app
from warehouse.database import Base, get_db, create_db_engine
from warehouse.models import Category, Product
from warehouse.utils.cache import CacheService, get_cache_service


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_db_engine(SQLALCHEMY_DATABASE_URL, poolclass=StaticPool)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


def make_redis_mock():
    """Redis client stand-in that always misses."""
    redis_client = MagicMock()
    redis_client.get.return_value = None
    redis_client.scan_iter.return_value = []
    return redis_client


@pytest.fixture(scope="function")
def cache():
    """Cache service backed by a mocked Redis client."""
    cache_service = CacheService(make_redis_mock(), ttl=60)
    app.dependency_overrides[get_cache_service] = lambda: cache_service
    yield cache_service
    app.dependency_overrides.pop(get_cache_service, None)


@pytest.fixture(scope="function")
def low_stock_delay():
    """Patch the Celery low-stock task so no broker is needed."""
    with patch("warehouse.api.inventory.check_low_stock.delay") as delay:
        yield delay


@pytest.fixture(scope="function")
def client(cache, low_stock_delay):
    """Create test client with fresh database for each test."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    with TestClient(app) as test_client:
        yield test_client

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def create_category(client):
    """Create a category through the API and return its JSON."""
    counter = {"n": 0}

    def _create(name=None, description=None):
        counter["n"] += 1
        payload = {"name": name or f"Category {counter['n']}"}
        if description is not None:
            payload["description"] = description
        response = client.post("/api/v1/categories/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def create_product(client, create_category):
    """Create a product through the API and return its JSON."""
    counter = {"n": 0}

    def _create(quantity=0, price=10.00, category_id=None, name=None, code=None):
        counter["n"] += 1
        if category_id is None:
            category_id = create_category()["id"]
        payload = {
            "name": name or f"Product {counter['n']}",
            "product_code": code or f"SKU-{counter['n']:04d}",
            "price": price,
            "quantity": quantity,
            "category_id": category_id,
        }
        response = client.post("/api/v1/products/", json=payload)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    return _create


@pytest.fixture
def seed_product(db_session):
    """Insert a product directly through the ORM and return it."""
    counter = {"n": 0}

    def _seed(quantity=0, price=1.00, category=None, name=None):
        counter["n"] += 1
        if category is None:
            category = Category(name=f"Seed Category {counter['n']}")
            db_session.add(category)
            db_session.flush()
        product = Product(
            name=name or f"Seed Product {counter['n']}",
            product_code=f"SEED-{counter['n']:04d}",
            price=price,
            quantity=quantity,
            category_id=category.id,
        )
        db_session.add(product)
        # No transaction is left open; all test sessions share one connection
        db_session.commit()
        return product

    return _seed


@pytest.fixture
def task_session(db_session):
    """Point Celery tasks at the test database."""
    with patch("warehouse.tasks.inventory_tasks.SessionLocal", TestingSessionLocal):
        yield db_session
