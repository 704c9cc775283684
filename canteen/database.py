"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support:

  - engine: The async database engine
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

Transactions:
  One request is one database transaction. get_db() commits when the route
  returns and rolls back on ANY exception, business errors included, so a
  checkout that fails halfway leaves no reserved stock, no debit and no
  order behind.

Concurrency:
  Stock and balance changes rely on the database: row locks
  (SELECT ... FOR UPDATE) and compare-and-set UPDATEs on PostgreSQL. SQLite
  has no row locks, so configure_sqlite() opens every transaction with
  BEGIN IMMEDIATE, which takes the database write lock up front and makes
  concurrent writers queue (for up to SQLITE_BUSY_TIMEOUT seconds) instead
  of interleaving.
"""

from sqlalchemy import event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from canteen.config import settings
from canteen.logging_config import get_logger

logger = get_logger(__name__)


def configure_sqlite(engine: AsyncEngine) -> None:
    """
    Make aiosqlite transactions explicit and writer-serialized.

    The driver's own BEGIN handling is switched off and replaced by
    BEGIN IMMEDIATE, which also makes SAVEPOINT (begin_nested) work.
    No-op for other backends.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine for `url`, applying SQLite settings when needed."""
    if url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("timeout", settings.SQLITE_BUSY_TIMEOUT)
        kwargs["connect_args"] = connect_args
    engine = create_async_engine(url, **kwargs)
    configure_sqlite(engine)
    return engine


# echo=True in debug mode logs all SQL statements
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# expire_on_commit=False prevents lazy-load errors after commit in async context
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    Committed on success, rolled back on any exception, then closed.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await rollback_or_flag(session)
            raise


async def rollback_or_flag(session: AsyncSession) -> None:
    """
    Roll back `session`. If the rollback itself fails the store may hold a
    partially applied operation: log it for manual reconciliation and
    re-raise. Never retried, since a blind retry could charge twice.
    """
    try:
        await session.rollback()
    except SQLAlchemyError:
        logger.critical(
            "Rollback failed, reconciliation required",
            exc_info=True,
        )
        raise
