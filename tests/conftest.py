"""Shared test fixtures for the async catalog database and sample records."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, datetime
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from dataset_catalog.core.config import Settings
from dataset_catalog.lib.manifest import BlockLimits
from dataset_catalog.models.base import Base
from dataset_catalog.schemas.dataset import DatasetCreateRequest

MIB = 1024 * 1024


@pytest.fixture
def settings() -> Settings:
    """Test catalog settings."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        database_url="sqlite+aiosqlite:///:memory:",
        pid_prefix="20.500.12345/",
    )


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine with foreign keys enforced."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def limits() -> BlockLimits:
    """Small block ceilings so partitioning is easy to exercise."""
    return BlockLimits(max_bytes=10 * MIB, max_files=3)


@pytest.fixture
def raw_request() -> Callable[..., DatasetCreateRequest]:
    """Factory for valid raw dataset creation requests."""

    def _make(**overrides: Any) -> DatasetCreateRequest:
        data: dict[str, Any] = {
            "owner": "alice",
            "contact_email": "alice@facility.example",
            "source_folder": "/data/beamline/run1/",
            "type": "raw",
            "creation_time": datetime(2024, 3, 1, 12, 0, tzinfo=UTC),
            "creation_location": "beamline-7",
            "owner_group": "group-a",
        }
        data.update(overrides)
        return DatasetCreateRequest(**data)

    return _make


@pytest.fixture
def derived_request() -> Callable[..., DatasetCreateRequest]:
    """Factory for valid derived dataset creation requests."""

    def _make(**overrides: Any) -> DatasetCreateRequest:
        data: dict[str, Any] = {
            "owner": "bob",
            "contact_email": "bob@facility.example",
            "source_folder": "/analysis/run1",
            "type": "derived",
            "creation_time": datetime(2024, 3, 2, 9, 30, tzinfo=UTC),
            "input_datasets": ["20.500.12345/raw-1"],
            "investigator": "bob",
        }
        data.update(overrides)
        return DatasetCreateRequest(**data)

    return _make
