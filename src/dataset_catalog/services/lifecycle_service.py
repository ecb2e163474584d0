"""Lifecycle service — apply archival and retrieval events to datasets."""

from datetime import UTC, datetime

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from dataset_catalog.core.concurrency import run_with_version_retry
from dataset_catalog.core.database import commit_or_rollback
from dataset_catalog.lib.lifecycle import InvalidTransitionError, Lifecycle, LifecycleEvent
from dataset_catalog.models.dataset import Dataset
from dataset_catalog.services.dataset_service import DEFAULT_WRITE_ATTEMPTS, require_dataset


async def get_lifecycle(session: AsyncSession, pid: str) -> Lifecycle:
    """Return the current lifecycle of a dataset.

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
    """
    dataset = await require_dataset(session, pid)
    return dataset.get_lifecycle()


async def apply_lifecycle_event(
    session: AsyncSession,
    pid: str,
    event: LifecycleEvent,
    *,
    at: datetime | None = None,
    message: str | None = None,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> tuple[Dataset, bool]:
    """Apply one lifecycle event reported by the archival system.

    Redelivery of the event that produced the current state is accepted and
    changes nothing.

    Args:
        session: Async database session.
        pid: Dataset PID.
        event: The reported event.
        at: Event timestamp (defaults to now).
        message: Optional status message stored with the lifecycle.
        retry_attempts: Attempts when losing a concurrent write race.

    Returns:
        Tuple of (dataset, whether the state changed).

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
        InvalidTransitionError: If the event is illegal in the current state.
        ConcurrentModificationError: If every attempt lost the race.
    """
    timestamp = at or datetime.now(UTC)

    async def _apply() -> tuple[Dataset, bool]:
        dataset = await require_dataset(session, pid)
        lifecycle = dataset.get_lifecycle()
        previous = lifecycle.state
        try:
            changed = lifecycle.apply(event, at=timestamp, message=message)
        except InvalidTransitionError:
            logger.warning(f"Rejected lifecycle event {event} for {pid} in state {previous}")
            raise
        if not changed:
            logger.debug(f"Ignored redelivered lifecycle event {event} for {pid}")
            return dataset, False

        dataset.set_lifecycle(lifecycle)
        await commit_or_rollback(session)
        logger.info(f"Dataset {pid} lifecycle {previous} -> {lifecycle.state} ({event})")
        return dataset, True

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


async def set_retention(
    session: AsyncSession,
    pid: str,
    *,
    archive_retention_time: datetime | None = None,
    date_of_disk_purging: datetime | None = None,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> Dataset:
    """Record retention and purge dates on a dataset's lifecycle.

    Only the dates that are passed are changed.

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
    """

    async def _apply() -> Dataset:
        dataset = await require_dataset(session, pid)
        lifecycle = dataset.get_lifecycle()
        if archive_retention_time is not None:
            lifecycle.archive_retention_time = archive_retention_time
        if date_of_disk_purging is not None:
            lifecycle.date_of_disk_purging = date_of_disk_purging
        dataset.set_lifecycle(lifecycle)
        await commit_or_rollback(session)
        logger.info(f"Updated retention dates for {pid}")
        return dataset

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)
