"""Publication service — register sets of datasets for citation and obtain DOIs.

A registration snapshots the aggregate size and file count of its datasets
and starts ``pending_registration``.  Confirming mints the DOI; publishing
marks the constituent datasets as published.
"""

import hashlib
import uuid
from collections.abc import Sequence
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dataset_catalog.core.concurrency import run_with_version_retry
from dataset_catalog.core.database import commit_or_rollback, translate_storage_errors
from dataset_catalog.lib.doi import BaseDoiMinter, DoiRequest
from dataset_catalog.models.dataset import Dataset
from dataset_catalog.models.published_data import PublicationStatus, PublishedData
from dataset_catalog.schemas.publication import PublicationMetadata, PublicationMetadataUpdate
from dataset_catalog.services.dataset_service import DEFAULT_WRITE_ATTEMPTS, DatasetNotFoundError


class DatasetNotPublishableError(ValueError):
    """Raised when a dataset is unknown or has not reached a publishable lifecycle state."""

    def __init__(self, pids: Sequence[str], reason: str = "not yet archived") -> None:
        self.pids = list(pids)
        super().__init__(f"Datasets {reason}: {', '.join(self.pids)}")


class AlreadyRegisteredError(ValueError):
    """Raised when the dataset set already has a confirmed registration."""

    def __init__(self, publication: PublishedData) -> None:
        self.publication_id = publication.id
        self.doi = publication.doi
        super().__init__(f"Datasets already registered as {publication.doi or publication.id} ({publication.status})")


class PublicationNotFoundError(LookupError):
    """Raised when no published data record has the requested id."""


class PublicationStateError(ValueError):
    """Raised when an operation is not allowed in the record's current status."""


def pid_set_key(pids: Sequence[str]) -> str:
    """Order-independent key identifying a set of dataset PIDs."""
    canonical = "\n".join(sorted(set(pids)))
    return hashlib.sha256(canonical.encode()).hexdigest()


def _unique(pids: Sequence[str]) -> list[str]:
    return list(dict.fromkeys(pids))


async def get_publication(session: AsyncSession, publication_id: uuid.UUID) -> PublishedData | None:
    """Fetch a published data record by id, reflecting the latest committed state."""
    with translate_storage_errors():
        result = await session.execute(
            select(PublishedData)
            .where(PublishedData.id == publication_id)
            .execution_options(populate_existing=True)
        )
    return result.scalar_one_or_none()


async def require_publication(session: AsyncSession, publication_id: uuid.UUID) -> PublishedData:
    """Like :func:`get_publication` but raises PublicationNotFoundError when absent."""
    publication = await get_publication(session, publication_id)
    if publication is None:
        msg = f"Published data '{publication_id}' not found"
        raise PublicationNotFoundError(msg)
    return publication


async def _active_for_key(session: AsyncSession, key: str) -> PublishedData | None:
    with translate_storage_errors():
        result = await session.execute(
            select(PublishedData)
            .where(PublishedData.pid_set_key == key, PublishedData.status != PublicationStatus.CANCELLED.value)
            .execution_options(populate_existing=True)
        )
    return result.scalar_one_or_none()


def _existing_or_raise(existing: PublishedData) -> PublishedData:
    if existing.status == PublicationStatus.PENDING_REGISTRATION:
        logger.info(f"Reusing pending registration {existing.id}")
        return existing
    raise AlreadyRegisteredError(existing)


async def _load_datasets(session: AsyncSession, pids: Sequence[str]) -> tuple[list[Dataset], list[str]]:
    """Datasets in ``pids`` order, plus the PIDs that do not exist."""
    with translate_storage_errors():
        result = await session.execute(
            select(Dataset).where(Dataset.pid.in_(pids)).execution_options(populate_existing=True)
        )
    found = {dataset.pid: dataset for dataset in result.scalars().all()}
    missing = [pid for pid in pids if pid not in found]
    return [found[pid] for pid in pids if pid in found], missing


async def register_publication(
    session: AsyncSession,
    pids: Sequence[str],
    metadata: PublicationMetadata,
    *,
    actor: str | None = None,
) -> PublishedData:
    """Create a pending registration for a set of datasets.

    Registering the same set again (in any order) returns the existing
    pending record instead of creating a duplicate.

    Args:
        session: Async database session.
        pids: Dataset PIDs to publish together.
        metadata: Citation metadata.
        actor: Identity recorded as ``registered_by``.

    Returns:
        The pending PublishedData record.

    Raises:
        ValueError: If no PIDs are given.
        DatasetNotPublishableError: If any PID is unknown or its dataset has
            not reached archived.
        AlreadyRegisteredError: If the set already has a confirmed DOI.
    """
    unique_pids = _unique(pids)
    if not unique_pids:
        msg = "At least one dataset PID is required"
        raise ValueError(msg)
    key = pid_set_key(unique_pids)

    existing = await _active_for_key(session, key)
    if existing is not None:
        return _existing_or_raise(existing)

    datasets, missing = await _load_datasets(session, unique_pids)
    if missing:
        raise DatasetNotPublishableError(missing, reason="not found")
    blocked = [dataset.pid for dataset in datasets if not dataset.get_lifecycle().publishable]
    if blocked:
        raise DatasetNotPublishableError(blocked)

    publication = PublishedData(
        status=PublicationStatus.PENDING_REGISTRATION.value,
        pid_array=unique_pids,
        pid_set_key=key,
        number_of_files=sum(dataset.number_of_files for dataset in datasets),
        size_of_archive=sum(dataset.packed_size for dataset in datasets),
        registered_by=actor,
        **metadata.model_dump(),
    )
    session.add(publication)
    try:
        await commit_or_rollback(session)
    except IntegrityError:
        existing = await _active_for_key(session, key)
        if existing is None:
            raise
        return _existing_or_raise(existing)

    logger.info(
        f"Registered publication {publication.id} for {len(unique_pids)} dataset(s), "
        f"{publication.size_of_archive} bytes"
    )
    return publication


def _doi_request(publication: PublishedData) -> DoiRequest:
    return DoiRequest(
        publication_id=publication.id,
        title=publication.title,
        creators=list(publication.creator),
        publisher=publication.publisher,
        publication_year=publication.publication_year,
        abstract=publication.abstract,
        resource_type=publication.resource_type,
        landing_page_url=publication.url,
        related_identifiers=list(publication.related_publications),
    )


def _require_pending(publication: PublishedData) -> None:
    if publication.status in (PublicationStatus.REGISTERED, PublicationStatus.PUBLIC):
        raise AlreadyRegisteredError(publication)
    if publication.status == PublicationStatus.CANCELLED:
        msg = f"Published data '{publication.id}' was cancelled"
        raise PublicationStateError(msg)


async def confirm_registration(
    session: AsyncSession,
    publication_id: uuid.UUID,
    minter: BaseDoiMinter,
    *,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> PublishedData:
    """Mint the DOI for a pending registration and mark it registered.

    When the agency rejects the request the record stays pending and the
    error propagates; confirming again later retries the same DOI name.

    Raises:
        PublicationNotFoundError: If the record does not exist.
        AlreadyRegisteredError: If it already has a DOI.
        PublicationStateError: If it was cancelled.
        DoiMintingError: If the agency rejects or cannot be reached.
    """
    publication = await require_publication(session, publication_id)
    _require_pending(publication)

    doi = await minter.mint(_doi_request(publication))

    async def _apply() -> PublishedData:
        current = await require_publication(session, publication_id)
        _require_pending(current)
        current.doi = doi
        current.status = PublicationStatus.REGISTERED.value
        current.registered_time = datetime.now(UTC)
        await commit_or_rollback(session)
        logger.info(f"Publication {publication_id} registered as {doi} via {minter.provider_name}")
        return current

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


async def publish_publication(
    session: AsyncSession,
    publication_id: uuid.UUID,
    *,
    actor: str,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> PublishedData:
    """Make a registered publication public and flag its datasets as published.

    The record and every constituent dataset change in one transaction.
    Each dataset whose flag flips gets an ``is_published`` history entry.

    Raises:
        PublicationNotFoundError: If the record does not exist.
        PublicationStateError: If the record is not registered.
        DatasetNotFoundError: If a constituent dataset no longer exists.
    """

    async def _apply() -> PublishedData:
        publication = await require_publication(session, publication_id)
        if publication.status == PublicationStatus.PUBLIC:
            return publication
        if publication.status != PublicationStatus.REGISTERED:
            msg = f"Published data '{publication_id}' is {publication.status}; only registered records can be published"
            raise PublicationStateError(msg)

        now = datetime.now(UTC)
        datasets, missing = await _load_datasets(session, publication.pid_array)
        if missing:
            msg = f"Datasets not found: {', '.join(missing)}"
            raise DatasetNotFoundError(msg)
        for dataset in datasets:
            if dataset.is_published:
                continue
            ledger = dataset.get_history()
            ledger.record("is_published", False, True, actor, at=now)
            dataset.set_history(ledger)
            dataset.is_published = True
        publication.status = PublicationStatus.PUBLIC.value

        await commit_or_rollback(session)
        logger.info(f"Publication {publication.doi} is public ({len(datasets)} dataset(s))")
        return publication

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


async def cancel_registration(
    session: AsyncSession,
    publication_id: uuid.UUID,
    *,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> PublishedData:
    """Cancel a pending registration, freeing its dataset set for a new one.

    Raises:
        PublicationNotFoundError: If the record does not exist.
        PublicationStateError: If a DOI has already been minted.
    """

    async def _apply() -> PublishedData:
        publication = await require_publication(session, publication_id)
        if publication.status == PublicationStatus.CANCELLED:
            return publication
        if publication.status != PublicationStatus.PENDING_REGISTRATION:
            msg = f"Published data '{publication_id}' already has DOI {publication.doi}; it cannot be cancelled"
            raise PublicationStateError(msg)
        publication.status = PublicationStatus.CANCELLED.value
        await commit_or_rollback(session)
        logger.info(f"Cancelled pending registration {publication_id}")
        return publication

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


async def update_publication_metadata(
    session: AsyncSession,
    publication_id: uuid.UUID,
    request: PublicationMetadataUpdate,
    *,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> PublishedData:
    """Correct citation metadata on a live record.

    Raises:
        PublicationNotFoundError: If the record does not exist.
        PublicationStateError: If the record was cancelled.
    """
    patch = request.model_dump(exclude_unset=True)

    async def _apply() -> PublishedData:
        publication = await require_publication(session, publication_id)
        if publication.status == PublicationStatus.CANCELLED:
            msg = f"Published data '{publication_id}' was cancelled"
            raise PublicationStateError(msg)
        for field, value in patch.items():
            setattr(publication, field, value)
        await commit_or_rollback(session)
        return publication

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


async def list_publications(
    session: AsyncSession,
    *,
    status: PublicationStatus | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[PublishedData], int]:
    """List published data records, newest first.

    Returns:
        Tuple of (records, total count).
    """
    query = select(PublishedData)
    count_query = select(func.count(PublishedData.id))
    if status is not None:
        query = query.where(PublishedData.status == status.value)
        count_query = count_query.where(PublishedData.status == status.value)

    offset = (page - 1) * page_size
    query = query.order_by(PublishedData.created_at.desc(), PublishedData.id).offset(offset).limit(page_size)

    with translate_storage_errors():
        total = (await session.execute(count_query)).scalar_one()
        result = await session.execute(query)
    return list(result.scalars().all()), total
