"""
Database engine, session management, and base model class.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request

Unit of work:
  The request-scoped session IS the ledger's unit of work. Every ledger
  operation stages all of its reads and writes (account balance patches,
  transactions, transfers, balance history) in one session, and get_db()
  commits them together or not at all.

  Unlike a plain CRUD app, domain errors are rolled back too. A rejected
  transfer must leave no Transfer, Transaction, or history row behind, so
  there is no "commit the audit trail on failure" path.
"""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from bankledger.config import settings


def enable_sqlite_write_locking(async_engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction take the database write lock up front.

    SELECT ... FOR UPDATE is not supported by SQLite, and the driver's
    default deferred BEGIN only locks at the first write. Two requests could
    then read the same balance and both write back a value computed from it.
    BEGIN IMMEDIATE serializes whole units of work instead, which is what
    the row locks do on PostgreSQL.

    Does nothing for other dialects.
    """
    if async_engine.dialect.name != "sqlite":
        return

    sync_engine = async_engine.sync_engine

    @event.listens_for(sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        # The driver must not emit its own deferred BEGIN
        dbapi_connection.isolation_level = None

    @event.listens_for(sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


# Create the async engine.
# echo=True in debug mode logs all SQL statements.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)
enable_sqlite_write_locking(engine)

# Session factory: creates new AsyncSession instances.
# expire_on_commit=False prevents lazy-load errors after commit —
# without this, accessing attributes on a committed object would trigger
# a synchronous DB call, which fails in async context.
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

    The session is committed on success and rolled back on ANY exception
    (including LedgerError subclasses), then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
