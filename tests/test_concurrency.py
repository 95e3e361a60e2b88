"""Tests for concurrent ledger transitions on a shared database file."""
from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from warehouse.database import Base, create_db_engine
from warehouse.models import Category, InventoryHistory, Product
from warehouse.services.inventory_service import InventoryService
from warehouse.utils.errors import InsufficientStockError

WORKERS = 8


def _file_database(path, **kwargs):
    engine = create_db_engine(f"sqlite:///{path}", **kwargs)
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    return engine, factory


@pytest.fixture
def file_sessions(tmp_path):
    """Session factory bound to a file-backed SQLite database."""
    engine, factory = _file_database(tmp_path / "ledger.db")

    yield factory

    engine.dispose()


@pytest.fixture
def impatient_sessions(tmp_path):
    """Like file_sessions, but a held lock fails within a second instead of waiting."""
    engine, factory = _file_database(tmp_path / "locks.db", connect_args={"timeout": 1})

    yield factory

    engine.dispose()


def _seed(factory, quantity):
    with factory() as db:
        category = Category(name="Concurrency")
        db.add(category)
        db.flush()
        product = Product(
            name="Contended",
            product_code="LOCK-1",
            price=1.00,
            quantity=quantity,
            category_id=category.id,
        )
        db.add(product)
        db.commit()
        return product.id


def _run(factory, operation, product_id, amount):
    db = factory()
    try:
        getattr(InventoryService(db), operation)(product_id, amount)
        return "ok"
    except InsufficientStockError:
        return "insufficient"
    finally:
        db.close()


def _ledger(factory, product_id):
    with factory() as db:
        quantity = db.get(Product, product_id).quantity
        rows = db.execute(
            select(InventoryHistory)
            .where(InventoryHistory.product_id == product_id)
            .order_by(InventoryHistory.id.asc())
        ).scalars().all()
        return quantity, [(r.quantity_before, r.quantity_change, r.quantity_after) for r in rows]


def test_concurrent_increases_are_not_lost(file_sessions):
    """Test N parallel +1 increases from zero end at N with an unbroken chain."""
    product_id = _seed(file_sessions, quantity=0)
    total = WORKERS * 5

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda _: _run(file_sessions, "increase", product_id, 1), range(total)))

    assert results == ["ok"] * total
    quantity, rows = _ledger(file_sessions, product_id)
    assert quantity == total
    assert len(rows) == total
    assert [before for before, _, _ in rows] == list(range(total))
    assert rows[-1][2] == quantity


def test_concurrent_decreases_never_oversell(file_sessions):
    """Test more parallel decreases than stock: exactly the stock succeeds."""
    product_id = _seed(file_sessions, quantity=5)
    attempts = WORKERS * 2

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda _: _run(file_sessions, "decrease", product_id, 1), range(attempts)))

    assert results.count("ok") == 5
    assert results.count("insufficient") == attempts - 5
    quantity, rows = _ledger(file_sessions, product_id)
    assert quantity == 0
    assert len(rows) == 5
    for previous, current in zip(rows, rows[1:]):
        assert current[0] == previous[2]
        assert current[2] >= 0


def test_open_readers_do_not_block_each_other(impatient_sessions):
    """Test two sessions can hold read transactions on the same product at once."""
    product_id = _seed(impatient_sessions, quantity=3)
    first = impatient_sessions()
    second = impatient_sessions()

    try:
        assert first.get(Product, product_id).quantity == 3
        assert first.in_transaction()
        assert second.get(Product, product_id).quantity == 3
    finally:
        first.close()
        second.close()


def test_committed_increase_releases_the_write_lock(impatient_sessions):
    """Test a session that committed a transition doesn't hold up the next writer."""
    product_id = _seed(impatient_sessions, quantity=0)
    first = impatient_sessions()
    second = impatient_sessions()

    try:
        entry = InventoryService(first).increase(product_id, 1)
        assert not first.in_transaction()
        assert entry.id is not None
        assert entry.created_at is not None
        assert entry.quantity_after == 1

        InventoryService(second).increase(product_id, 1)
        assert not second.in_transaction()
    finally:
        first.close()
        second.close()

    quantity, rows = _ledger(impatient_sessions, product_id)
    assert quantity == 2
    assert rows == [(0, 1, 1), (1, 1, 2)]
