"""Shared test fixtures."""

from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import event_conflict.models  # noqa: F401  (registers every table on Base.metadata)
from event_conflict.engine.config import StoreConfig
from event_conflict.models.base import Base
from event_conflict.store.client import RetryingStore

# Reference tables shipped with the package
PACKAGE_CONFIG_DIR = Path(__file__).resolve().parents[1] / "src" / "event_conflict" / "config"


@pytest.fixture
def config_dir() -> Path:
    """Return the directory holding the shipped YAML tables."""
    return PACKAGE_CONFIG_DIR


@pytest.fixture
async def test_engine():
    """Create an async SQLite in-memory engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to the test engine."""
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture
def store(test_session_factory) -> RetryingStore:
    """RetryingStore over the in-memory database, without retry delays."""
    return RetryingStore(test_session_factory, StoreConfig(retry_delay_seconds=0))
