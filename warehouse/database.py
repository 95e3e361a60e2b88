from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from warehouse.config import get_settings

settings = get_settings()

# Connection execution option marking a transaction that will write
WRITE_LOCK_OPTION = "warehouse_write_lock"


def _configure_sqlite(engine: Engine) -> None:
    """
    Make SQLite behave like the production store.

    - Foreign keys are enforced (restrict / cascade rules on the tables).
    - Write transactions (opened by unit_of_work) start with BEGIN IMMEDIATE,
      so two writers can never read the same product quantity before one of
      them commits. SQLite has no row locks, so this is what
      SELECT ... FOR UPDATE maps to. Reads use a plain deferred BEGIN and
      never take the write lock.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy, not pysqlite, emit BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        if conn.get_execution_options().get(WRITE_LOCK_OPTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def create_db_engine(url: str, **kwargs) -> Engine:
    """
    Create a SQLAlchemy engine for the given URL.

    PostgreSQL gets a connection pool; SQLite gets the settings needed to
    share connections across request threads and to serialize writers.
    """
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", 30)
        engine = create_engine(url, connect_args=connect_args, **kwargs)
        _configure_sqlite(engine)
        return engine

    kwargs.setdefault("pool_size", 10)
    kwargs.setdefault("max_overflow", 20)
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


# Process-scoped engine and session factory
engine = create_db_engine(settings.DATABASE_URL)

# Objects stay readable after commit without another round trip
SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# Base class for models
Base = declarative_base()


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp used for created_at/updated_at columns."""
    return datetime.now(timezone.utc)


def get_db():
    """
    Dependency to get database session.
    Yields a database session and closes it after use.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Run a block of work as one write transaction.

    A read transaction still open on the session is committed first, so the
    write lock is taken at BEGIN instead of being upgraded mid-transaction.
    Commits when the block exits normally and rolls back every pending
    change when it raises, then re-raises the original exception.
    """
    if db.in_transaction():
        db.commit()
    try:
        db.connection(execution_options={WRITE_LOCK_OPTION: True})
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
