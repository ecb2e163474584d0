"""Tests for the database engine and session management module."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

import dataset_catalog.core.database as db_module
from dataset_catalog.core.database import (
    StorageUnavailableError,
    commit_or_rollback,
    dispose_engine,
    get_engine,
    get_session_factory,
    init_engine,
    translate_storage_errors,
)


class TestGetEngine:
    """Tests for get_engine."""

    def test_raises_when_not_initialized(self) -> None:
        original_engine = db_module._engine
        db_module._engine = None
        try:
            with pytest.raises(RuntimeError, match="Database engine not initialized"):
                get_engine()
        finally:
            db_module._engine = original_engine

    async def test_returns_engine_when_initialized(self) -> None:
        engine = init_engine("sqlite+aiosqlite:///:memory:")
        try:
            assert get_engine() is engine
        finally:
            await dispose_engine()


class TestGetSessionFactory:
    """Tests for get_session_factory."""

    def test_raises_when_not_initialized(self) -> None:
        original_factory = db_module._session_factory
        db_module._session_factory = None
        try:
            with pytest.raises(RuntimeError, match="Session factory not initialized"):
                get_session_factory()
        finally:
            db_module._session_factory = original_factory


class TestInitEngine:
    """Tests for init_engine and dispose_engine."""

    async def test_dispose_clears_state(self) -> None:
        init_engine("sqlite+aiosqlite:///:memory:")
        await dispose_engine()
        assert db_module._engine is None
        assert db_module._session_factory is None

    async def test_dispose_without_engine_is_noop(self) -> None:
        await dispose_engine()
        await dispose_engine()

    async def test_schema_sets_search_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        captured: dict[str, object] = {}

        def fake_create(url: str, **kwargs: object) -> MagicMock:
            captured.update(kwargs)
            return MagicMock()

        monkeypatch.setattr(db_module, "create_async_engine", fake_create)
        monkeypatch.setattr(db_module, "_engine", None)
        monkeypatch.setattr(db_module, "_session_factory", None)
        init_engine("postgresql+asyncpg://localhost/catalog", schema="pr_7")

        assert captured["connect_args"] == {"server_settings": {"search_path": "pr_7,public"}}
        assert captured["pool_size"] == 10

    def test_rejects_non_dict_connect_args(self) -> None:
        with pytest.raises(TypeError, match="connect_args must be a dict"):
            init_engine("postgresql+asyncpg://localhost/catalog", schema="pr_7", connect_args="bad")


class TestTranslateStorageErrors:
    """Tests for translate_storage_errors."""

    @pytest.mark.parametrize("error_type", [OperationalError, InterfaceError])
    def test_connectivity_errors_translated(self, error_type: type[Exception]) -> None:
        with pytest.raises(StorageUnavailableError, match="connection refused"), translate_storage_errors():
            raise error_type("SELECT 1", {}, ConnectionRefusedError("connection refused"))

    def test_other_errors_propagate(self) -> None:
        with pytest.raises(IntegrityError), translate_storage_errors():
            raise IntegrityError("INSERT", {}, Exception("duplicate key"))


class TestCommitOrRollback:
    """Tests for commit_or_rollback."""

    async def test_commits(self) -> None:
        session = MagicMock()
        session.commit = AsyncMock()
        session.rollback = AsyncMock()
        await commit_or_rollback(session)
        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    async def test_rolls_back_on_failure(self) -> None:
        session = MagicMock()
        session.commit = AsyncMock(side_effect=OperationalError("COMMIT", {}, Exception("server closed")))
        session.rollback = AsyncMock()
        with pytest.raises(StorageUnavailableError):
            await commit_or_rollback(session)
        session.rollback.assert_awaited_once()
