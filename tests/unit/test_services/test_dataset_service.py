"""Unit tests for the dataset catalog service."""

from collections.abc import Callable
from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from dataset_catalog.core.concurrency import run_with_version_retry
from dataset_catalog.lib.dataset import DatasetValidationError
from dataset_catalog.lib.lifecycle import LifecycleState
from dataset_catalog.schemas.dataset import DatasetCreateRequest, DatasetFilter, DatasetUpdateRequest
from dataset_catalog.services.dataset_service import (
    DatasetNotFoundError,
    DuplicateDatasetError,
    PidExhaustedError,
    create_dataset,
    find_datasets,
    get_dataset,
    get_history,
    list_datasets,
    require_dataset,
    update_dataset,
)

RawFactory = Callable[..., DatasetCreateRequest]


class TestCreateDataset:
    """Tests for create_dataset()."""

    async def test_creates_raw_dataset(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        dataset = await create_dataset(async_session, raw_request(pid="pid-1"))

        assert dataset.pid == "pid-1"
        assert dataset.source_folder == "/data/beamline/run1"
        assert dataset.dataset_name == "beamline/run1"
        assert dataset.size == 0
        assert dataset.number_of_files == 0
        assert dataset.packed_size == 0
        assert dataset.is_published is False
        assert dataset.history == []
        assert dataset.lifecycle_state == LifecycleState.CREATED
        assert dataset.get_lifecycle().state == LifecycleState.CREATED

    async def test_persisted_and_readable(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="pid-1"))
        stored = await get_dataset(async_session, "pid-1")
        assert stored is not None
        assert stored.owner == "alice"
        assert stored.access_groups == []
        assert stored.techniques == []
        assert stored.relationships == []

    async def test_explicit_name_kept(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        dataset = await create_dataset(async_session, raw_request(pid="p", dataset_name="My run"))
        assert dataset.dataset_name == "My run"

    async def test_generated_pid_uses_factory(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        dataset = await create_dataset(async_session, raw_request(), new_pid=lambda: "20.500.12345/abc")
        assert dataset.pid == "20.500.12345/abc"

    async def test_generated_pid_retries_on_collision(
        self, async_session: AsyncSession, raw_request: RawFactory
    ) -> None:
        await create_dataset(async_session, raw_request(pid="taken"))
        candidates = iter(["taken", "taken", "fresh"])
        dataset = await create_dataset(async_session, raw_request(), new_pid=lambda: next(candidates))
        assert dataset.pid == "fresh"

    async def test_pid_exhausted(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="taken"))
        with pytest.raises(PidExhaustedError, match="3 attempts"):
            await create_dataset(async_session, raw_request(), new_pid=lambda: "taken", max_pid_attempts=3)

    async def test_duplicate_supplied_pid(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="dup"))
        with pytest.raises(DuplicateDatasetError):
            await create_dataset(async_session, raw_request(pid="dup"))

    async def test_raw_without_location_rejected(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        with pytest.raises(DatasetValidationError, match="creation_location"):
            await create_dataset(async_session, raw_request(pid="bad", creation_location=None))
        assert await get_dataset(async_session, "bad") is None

    async def test_derived_requires_inputs(self, async_session: AsyncSession, derived_request: RawFactory) -> None:
        with pytest.raises(DatasetValidationError, match="input_datasets"):
            await create_dataset(async_session, derived_request(pid="d", input_datasets=[]))

    async def test_derived_dataset(self, async_session: AsyncSession, derived_request: RawFactory) -> None:
        dataset = await create_dataset(async_session, derived_request(pid="d1"))
        assert dataset.type == "derived"
        assert dataset.input_datasets == ["20.500.12345/raw-1"]

    async def test_techniques_and_relationships_stored(
        self, async_session: AsyncSession, derived_request: RawFactory
    ) -> None:
        dataset = await create_dataset(
            async_session,
            derived_request(
                pid="d1",
                techniques=[{"pid": "http://purl.org/pan-science/PaNET/PaNET01188", "name": "SAXS"}],
                relationships=[{"pid": "20.500.12345/raw-1", "relationship": "isDerivedFrom"}],
            ),
        )
        assert dataset.techniques[0]["name"] == "SAXS"
        assert dataset.relationships == [{"pid": "20.500.12345/raw-1", "relationship": "isDerivedFrom"}]


class TestUpdateDataset:
    """Tests for update_dataset()."""

    async def test_records_one_entry_per_changed_field(
        self, async_session: AsyncSession, raw_request: RawFactory
    ) -> None:
        await create_dataset(async_session, raw_request(pid="p", description="old"))
        dataset = await update_dataset(
            async_session,
            "p",
            DatasetUpdateRequest(description="new", keywords=["saxs"], owner="alice"),
            actor="curator",
        )

        assert dataset.description == "new"
        assert dataset.keywords == ["saxs"]
        ledger = dataset.get_history()
        assert [e.field for e in ledger] == ["description", "keywords"]
        assert ledger.entries[0].old_value == "old"
        assert ledger.entries[0].new_value == "new"
        assert ledger.entries[0].changed_by == "curator"

    async def test_history_accumulates(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        await update_dataset(async_session, "p", DatasetUpdateRequest(description="a"), actor="u1")
        await update_dataset(async_session, "p", DatasetUpdateRequest(description="b"), actor="u2")
        dataset = await require_dataset(async_session, "p")
        assert [(e.old_value, e.new_value) for e in dataset.get_history()] == [(None, "a"), ("a", "b")]

    async def test_no_change_writes_nothing(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        created = await create_dataset(async_session, raw_request(pid="p"))
        version = created.row_version
        dataset = await update_dataset(async_session, "p", DatasetUpdateRequest(owner="alice"), actor="u")
        assert dataset.history == []
        assert dataset.row_version == version

    async def test_same_instant_datetime_is_not_a_change(
        self, async_session: AsyncSession, raw_request: RawFactory
    ) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        same = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)
        dataset = await update_dataset(async_session, "p", DatasetUpdateRequest(creation_time=same), actor="u")
        assert dataset.history == []

        plus_two = datetime(2024, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        dataset = await update_dataset(
            async_session, "p", DatasetUpdateRequest(creation_time=plus_two), actor="u"
        )
        assert dataset.history == []

    async def test_source_folder_normalized(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        dataset = await update_dataset(
            async_session, "p", DatasetUpdateRequest(source_folder="/data/run2/"), actor="u"
        )
        assert dataset.source_folder == "/data/run2"

    async def test_invalid_merge_leaves_record_untouched(
        self, async_session: AsyncSession, raw_request: RawFactory
    ) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        with pytest.raises(DatasetValidationError, match="input_datasets"):
            await update_dataset(async_session, "p", DatasetUpdateRequest(type="derived"), actor="u")

        dataset = await require_dataset(async_session, "p")
        assert dataset.type == "raw"
        assert dataset.history == []

    async def test_type_switch_with_required_fields(
        self, async_session: AsyncSession, raw_request: RawFactory
    ) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        dataset = await update_dataset(
            async_session, "p", DatasetUpdateRequest(type="derived", input_datasets=["src"]), actor="u"
        )
        assert dataset.type == "derived"

    async def test_relationship_change_recorded(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        link = {"pid": "other", "relationship": "isSupplementTo"}
        dataset = await update_dataset(async_session, "p", DatasetUpdateRequest(relationships=[link]), actor="u")

        entry = dataset.get_history().entries[0]
        assert (entry.field, entry.old_value, entry.new_value) == ("relationships", [], [link])

        dataset = await update_dataset(async_session, "p", DatasetUpdateRequest(relationships=[link]), actor="u")
        assert len(dataset.history) == 1

    async def test_missing_dataset(self, async_session: AsyncSession) -> None:
        with pytest.raises(DatasetNotFoundError):
            await update_dataset(async_session, "nope", DatasetUpdateRequest(description="x"), actor="u")


class TestGetHistory:
    """Tests for get_history()."""

    async def test_filtered_by_field(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="p"))
        await update_dataset(async_session, "p", DatasetUpdateRequest(description="a"), actor="u1")
        await update_dataset(async_session, "p", DatasetUpdateRequest(license="CC-BY-4.0"), actor="u2")
        await update_dataset(async_session, "p", DatasetUpdateRequest(description="b"), actor="u3")

        assert len(await get_history(async_session, "p")) == 3
        entries = await get_history(async_session, "p", "description")
        assert [e.changed_by for e in entries] == ["u1", "u3"]

    async def test_missing_dataset(self, async_session: AsyncSession) -> None:
        with pytest.raises(DatasetNotFoundError):
            await get_history(async_session, "nope")


class TestConcurrentUpdates:
    """Two sessions racing on the same dataset row."""

    async def test_stale_writer_loses_version_check(
        self, session_factory: async_sessionmaker[AsyncSession], raw_request: RawFactory
    ) -> None:
        async with session_factory() as setup:
            await create_dataset(setup, raw_request(pid="p"))

        async with session_factory() as first, session_factory() as second:
            stale = await require_dataset(first, "p")
            await update_dataset(second, "p", DatasetUpdateRequest(description="from second"), actor="bob")

            stale.license = "CC-BY-4.0"
            with pytest.raises(StaleDataError):
                await first.commit()
            await first.rollback()

            dataset = await update_dataset(first, "p", DatasetUpdateRequest(license="CC-BY-4.0"), actor="alice")

        assert dataset.description == "from second"
        assert dataset.license == "CC-BY-4.0"
        assert [(e.field, e.changed_by) for e in dataset.get_history()] == [
            ("description", "bob"),
            ("license", "alice"),
        ]

    async def test_losing_write_is_replayed(
        self, session_factory: async_sessionmaker[AsyncSession], raw_request: RawFactory
    ) -> None:
        async with session_factory() as setup:
            await create_dataset(setup, raw_request(pid="p"))

        calls = 0
        async with session_factory() as first, session_factory() as second:

            async def _tag_keywords() -> list[str]:
                nonlocal calls
                calls += 1
                dataset = await require_dataset(first, "p")
                if calls == 1:
                    await update_dataset(second, "p", DatasetUpdateRequest(keywords=["saxs"]), actor="bob")
                dataset.keywords = [*dataset.keywords, "reviewed"]
                await first.commit()
                return dataset.keywords

            keywords = await run_with_version_retry(first, _tag_keywords, attempts=3)

        assert calls == 2
        assert keywords == ["saxs", "reviewed"]


class TestListDatasets:
    """Tests for list_datasets() and find_datasets()."""

    async def _seed(self, session: AsyncSession, raw_request: RawFactory, count: int) -> None:
        for i in range(count):
            await create_dataset(
                session,
                raw_request(
                    pid=f"pid-{i:02d}",
                    owner="alice" if i % 2 == 0 else "bob",
                    creation_time=datetime(2024, 1, 1 + i, tzinfo=UTC),
                ),
            )

    async def test_pages_cover_all_rows_once(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await self._seed(async_session, raw_request, 7)
        seen: list[str] = []
        cursor = None
        while True:
            rows, cursor = await list_datasets(async_session, limit=3, cursor=cursor)
            seen.extend(row.pid for row in rows)
            if cursor is None:
                break
        assert seen == [f"pid-{i:02d}" for i in range(7)]

    async def test_sort_by_creation_time(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await self._seed(async_session, raw_request, 5)
        first, cursor = await list_datasets(async_session, sort_by="creation_time", limit=2)
        second, _ = await list_datasets(async_session, sort_by="creation_time", limit=2, cursor=cursor)
        assert [d.pid for d in first + second] == ["pid-00", "pid-01", "pid-02", "pid-03"]

    async def test_filter_by_owner(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await self._seed(async_session, raw_request, 6)
        rows, cursor = await list_datasets(async_session, DatasetFilter(owner="bob"))
        assert [d.pid for d in rows] == ["pid-01", "pid-03", "pid-05"]
        assert cursor is None

    async def test_filter_by_folder_prefix(self, async_session: AsyncSession, raw_request: RawFactory) -> None:
        await create_dataset(async_session, raw_request(pid="a", source_folder="/data/x_1"))
        await create_dataset(async_session, raw_request(pid="b", source_folder="/data/xy"))
        rows, _ = await list_datasets(async_session, DatasetFilter(source_folder_prefix="/data/x_"))
        assert [d.pid for d in rows] == ["a"]

    async def test_malformed_cursor(self, async_session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="cursor"):
            await list_datasets(async_session, cursor="not-a-cursor")

    async def test_find_datasets_streams_everything(
        self, async_session: AsyncSession, raw_request: RawFactory
    ) -> None:
        await self._seed(async_session, raw_request, 5)
        pids = [d.pid async for d in find_datasets(async_session, DatasetFilter(owner="alice"), page_size=1)]
        assert pids == ["pid-00", "pid-02", "pid-04"]
