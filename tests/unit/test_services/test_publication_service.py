"""Unit tests for the publication service."""

import uuid
from collections.abc import Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from dataset_catalog.lib.doi import BaseDoiMinter, DoiMintingError, DoiRequest, LocalDoiMinter
from dataset_catalog.lib.lifecycle import LifecycleEvent
from dataset_catalog.lib.manifest import BlockLimits, BlockVariant, ManifestEntry
from dataset_catalog.models.published_data import PublicationStatus
from dataset_catalog.schemas.dataset import DatasetCreateRequest
from dataset_catalog.schemas.publication import PublicationMetadata, PublicationMetadataUpdate
from dataset_catalog.services.dataset_service import create_dataset, require_dataset
from dataset_catalog.services.lifecycle_service import apply_lifecycle_event
from dataset_catalog.services.manifest_service import ingest_manifest
from dataset_catalog.services.publication_service import (
    AlreadyRegisteredError,
    DatasetNotPublishableError,
    PublicationNotFoundError,
    PublicationStateError,
    cancel_registration,
    confirm_registration,
    get_publication,
    list_publications,
    pid_set_key,
    publish_publication,
    register_publication,
    update_publication_metadata,
)

ARCHIVE_EVENTS = (
    LifecycleEvent.MARK_ARCHIVABLE,
    LifecycleEvent.ARCHIVING_STARTED,
    LifecycleEvent.ARCHIVING_COMPLETE,
)


class FailingMinter(BaseDoiMinter):
    """Minter that always reports a temporary agency outage."""

    @property
    def provider_name(self) -> str:
        return "failing"

    async def mint(self, request: DoiRequest) -> str:
        raise DoiMintingError(self.provider_name, "agency unavailable", retryable=True, status_code=503)


def _metadata(**overrides: object) -> PublicationMetadata:
    data: dict[str, object] = {
        "title": "Diffraction campaign 2024",
        "creator": ["Alice Smith"],
        "publisher": "Example Light Source",
        "publication_year": 2024,
    }
    data.update(overrides)
    return PublicationMetadata(**data)  # type: ignore[arg-type]


async def _archived_dataset(
    session: AsyncSession, raw_request: Callable[..., DatasetCreateRequest], pid: str, files: int, packed: int
) -> None:
    await create_dataset(session, raw_request(pid=pid))
    limits = BlockLimits(max_bytes=1024**3, max_files=1000)
    entries = [ManifestEntry(path=f"{pid}/{i}", size=1, checksum="c") for i in range(files)]
    await ingest_manifest(session, pid, entries, limits=limits)
    await ingest_manifest(
        session, pid, [ManifestEntry(path=f"{pid}.tar", size=packed, checksum="t")], BlockVariant.ARCHIVED, limits=limits
    )
    for event in ARCHIVE_EVENTS:
        await apply_lifecycle_event(session, pid, event)


@pytest.fixture
async def archived_pair(async_session: AsyncSession, raw_request: Callable[..., DatasetCreateRequest]) -> list[str]:
    await _archived_dataset(async_session, raw_request, "A", files=10, packed=1000)
    await _archived_dataset(async_session, raw_request, "B", files=20, packed=2500)
    return ["A", "B"]


class TestPidSetKey:
    """Tests for pid_set_key()."""

    def test_order_and_duplicates_ignored(self) -> None:
        assert pid_set_key(["A", "B"]) == pid_set_key(["B", "A", "A"])

    def test_different_sets_differ(self) -> None:
        assert pid_set_key(["A"]) != pid_set_key(["A", "B"])


class TestRegisterPublication:
    """Tests for register_publication()."""

    async def test_aggregates_snapshot(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata(), actor="alice")

        assert publication.status == PublicationStatus.PENDING_REGISTRATION
        assert publication.number_of_files == 30
        assert publication.size_of_archive == 3500
        assert publication.pid_array == ["A", "B"]
        assert publication.doi is None
        assert publication.registered_by == "alice"

    async def test_same_set_returns_pending_record(
        self, async_session: AsyncSession, archived_pair: list[str]
    ) -> None:
        first = await register_publication(async_session, ["A", "B"], _metadata())
        second = await register_publication(async_session, ["B", "A"], _metadata(title="Other"))
        assert second.id == first.id
        _, total = await list_publications(async_session)
        assert total == 1

    async def test_unarchived_dataset_rejected(
        self,
        async_session: AsyncSession,
        archived_pair: list[str],
        raw_request: Callable[..., DatasetCreateRequest],
    ) -> None:
        await create_dataset(async_session, raw_request(pid="C"))
        with pytest.raises(DatasetNotPublishableError) as exc_info:
            await register_publication(async_session, ["A", "C"], _metadata())
        assert exc_info.value.pids == ["C"]

    async def test_unknown_dataset(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        with pytest.raises(DatasetNotPublishableError, match="not found") as exc_info:
            await register_publication(async_session, ["A", "Z"], _metadata())
        assert exc_info.value.pids == ["Z"]

    async def test_empty_set(self, async_session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="At least one"):
            await register_publication(async_session, [], _metadata())

    async def test_registered_set_cannot_register_again(
        self, async_session: AsyncSession, archived_pair: list[str]
    ) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        await confirm_registration(async_session, publication.id, LocalDoiMinter("10.5072"))
        with pytest.raises(AlreadyRegisteredError) as exc_info:
            await register_publication(async_session, archived_pair, _metadata())
        assert exc_info.value.doi == f"10.5072/{publication.id}"

    async def test_cancelled_set_can_register_again(
        self, async_session: AsyncSession, archived_pair: list[str]
    ) -> None:
        first = await register_publication(async_session, archived_pair, _metadata())
        await cancel_registration(async_session, first.id)
        second = await register_publication(async_session, archived_pair, _metadata())
        assert second.id != first.id


class TestConfirmRegistration:
    """Tests for confirm_registration()."""

    async def test_mints_doi(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        confirmed = await confirm_registration(async_session, publication.id, LocalDoiMinter("10.5072"))

        assert confirmed.status == PublicationStatus.REGISTERED
        assert confirmed.doi == f"10.5072/{publication.id}"
        assert confirmed.registered_time is not None

    async def test_agency_failure_keeps_pending(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        with pytest.raises(DoiMintingError) as exc_info:
            await confirm_registration(async_session, publication.id, FailingMinter("10.5072"))
        assert exc_info.value.retryable is True

        stored = await get_publication(async_session, publication.id)
        assert stored is not None
        assert stored.status == PublicationStatus.PENDING_REGISTRATION
        assert stored.doi is None

    async def test_confirm_twice(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        minter = LocalDoiMinter("10.5072")
        await confirm_registration(async_session, publication.id, minter)
        with pytest.raises(AlreadyRegisteredError):
            await confirm_registration(async_session, publication.id, minter)

    async def test_cancelled_cannot_confirm(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        await cancel_registration(async_session, publication.id)
        with pytest.raises(PublicationStateError):
            await confirm_registration(async_session, publication.id, LocalDoiMinter("10.5072"))

    async def test_unknown_publication(self, async_session: AsyncSession) -> None:
        with pytest.raises(PublicationNotFoundError):
            await confirm_registration(async_session, uuid.uuid4(), LocalDoiMinter("10.5072"))


class TestPublishPublication:
    """Tests for publish_publication()."""

    async def test_marks_datasets_published(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        await confirm_registration(async_session, publication.id, LocalDoiMinter("10.5072"))

        public = await publish_publication(async_session, publication.id, actor="curator")
        assert public.status == PublicationStatus.PUBLIC

        for pid in archived_pair:
            dataset = await require_dataset(async_session, pid)
            assert dataset.is_published is True
            entries = dataset.get_history().for_field("is_published")
            assert [(e.old_value, e.new_value, e.changed_by) for e in entries] == [(False, True, "curator")]

    async def test_publish_twice_is_noop(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        await confirm_registration(async_session, publication.id, LocalDoiMinter("10.5072"))
        await publish_publication(async_session, publication.id, actor="curator")
        await publish_publication(async_session, publication.id, actor="curator")

        dataset = await require_dataset(async_session, "A")
        assert len(dataset.get_history()) == 1

    async def test_pending_cannot_publish(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        with pytest.raises(PublicationStateError, match="only registered"):
            await publish_publication(async_session, publication.id, actor="curator")
        assert (await require_dataset(async_session, "A")).is_published is False


class TestCancelAndEdit:
    """Tests for cancel_registration() and update_publication_metadata()."""

    async def test_cancel_after_confirm_rejected(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        await confirm_registration(async_session, publication.id, LocalDoiMinter("10.5072"))
        with pytest.raises(PublicationStateError):
            await cancel_registration(async_session, publication.id)

    async def test_cancel_is_idempotent(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        await cancel_registration(async_session, publication.id)
        cancelled = await cancel_registration(async_session, publication.id)
        assert cancelled.status == PublicationStatus.CANCELLED

    async def test_metadata_corrected(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, archived_pair, _metadata())
        updated = await update_publication_metadata(
            async_session, publication.id, PublicationMetadataUpdate(title="Corrected title")
        )
        assert updated.title == "Corrected title"
        assert updated.number_of_files == 30

    async def test_list_filters_by_status(self, async_session: AsyncSession, archived_pair: list[str]) -> None:
        publication = await register_publication(async_session, ["A"], _metadata())
        await register_publication(async_session, ["B"], _metadata())
        await cancel_registration(async_session, publication.id)

        records, total = await list_publications(async_session, status=PublicationStatus.CANCELLED)
        assert total == 1
        assert records[0].id == publication.id
