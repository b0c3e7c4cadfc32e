"""
Test fixtures for the Bank Ledger test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - client: Async HTTP test client wired to the same database
  - make_account: Factory that creates an account through the service layer
  - file_db_engine / file_client: File-backed database with a real connection
    pool, for tests that run requests concurrently
  - ledger_log: caplog wired to the "bankledger" logger, which doesn't propagate

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database — no state leaks between tests.
    StaticPool keeps the single in-memory connection shared across sessions.
  - We override FastAPI's get_db dependency to inject test sessions, so the
    application code works exactly as it does in production, including the
    rollback-on-error unit of work.
  - Service-level tests use db_session directly; they exercise the ledger
    functions without HTTP.
"""

import logging
import uuid
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

import bankledger.models  # noqa: F401
from bankledger.database import Base, enable_sqlite_write_locking, get_db
from bankledger.logging_config import LOGGER_NAME
from bankledger.main import app
from bankledger.models.account import AccountType, AccountStatus
from bankledger.services import account_service


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    """Provide an async session bound to the test engine."""
    async_session = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with async_session() as session:
        yield session


@asynccontextmanager
async def _client_for(engine):
    """Yield an HTTP client whose requests get sessions from `engine`."""
    async_session = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_db():
        async with async_session() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(db_engine):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """
    async with _client_for(db_engine) as ac:
        yield ac


@pytest_asyncio.fixture
async def file_db_engine(tmp_path):
    """
    File-backed engine with the application's locking and a normal pool.

    Unlike db_engine, every session gets its own connection, so concurrent
    requests really do run in separate SQLite transactions.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")
    enable_sqlite_write_locking(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def file_client(file_db_engine):
    """HTTP test client backed by file_db_engine."""
    async with _client_for(file_db_engine) as ac:
        yield ac


@pytest_asyncio.fixture
async def make_account(db_session):
    """
    Factory fixture: create an account through the service layer.

    Usage:
        account = await make_account(balance_cents=50000)
    """
    async def _make(
        balance_cents: int = 0,
        account_type: AccountType = AccountType.CHECKING,
        status: AccountStatus = AccountStatus.ACTIVE,
        name: str = "Test Account",
    ):
        return await account_service.create_account(
            db_session,
            owner_id=uuid.uuid4(),
            name=name,
            account_type=account_type,
            balance_cents=balance_cents,
            status=status,
        )

    return _make


@pytest_asyncio.fixture
async def api_account(client):
    """
    Factory fixture: create an account over HTTP and return its JSON body.

    Usage:
        account = await api_account(balance_cents=50000, account_type="savings")
    """
    async def _make(balance_cents: int = 0, **extra):
        payload = {
            "owner_id": str(uuid.uuid4()),
            "name": extra.pop("name", "API Account"),
            "balance_cents": balance_cents,
            **extra,
        }
        response = await client.post("/accounts", json=payload)
        assert response.status_code == 201, f"Account creation failed: {response.text}"
        return response.json()

    return _make


@pytest.fixture
def ledger_log(caplog):
    """
    caplog attached to the "bankledger" logger.

    setup_logging() turns off propagation, so records never reach the root
    logger that caplog normally listens on.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.WARNING, logger=LOGGER_NAME)
    try:
        yield caplog
    finally:
        logger.removeHandler(caplog.handler)
