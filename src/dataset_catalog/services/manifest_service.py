"""Manifest service — partition file listings into sealed blocks and keep roll-ups current.

Sealed blocks are never rewritten.  New entries always land in new blocks
whose indices continue the dataset's existing sequence for that variant.
"""

from collections.abc import Sequence
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from dataset_catalog.core.concurrency import run_read_with_retry, run_with_version_retry
from dataset_catalog.core.database import commit_or_rollback, translate_storage_errors
from dataset_catalog.lib.manifest import BlockLimits, BlockVariant, ManifestEntry, partition_entries
from dataset_catalog.models.dataset import Dataset
from dataset_catalog.models.manifest_block import ManifestBlockRecord
from dataset_catalog.schemas.manifest import ManifestTotals
from dataset_catalog.services.dataset_service import DEFAULT_WRITE_ATTEMPTS, require_dataset

DEFAULT_READ_ATTEMPTS = 3


async def _variant_stats(session: AsyncSession, pid: str, variant: BlockVariant) -> tuple[int, int, int, int]:
    """Return (block count, highest index or -1, total bytes, total files) for one listing."""
    query = select(
        func.count(ManifestBlockRecord.id),
        func.max(ManifestBlockRecord.block_index),
        func.coalesce(func.sum(ManifestBlockRecord.block_size), 0),
        func.coalesce(func.sum(ManifestBlockRecord.file_count), 0),
    ).where(ManifestBlockRecord.dataset_pid == pid, ManifestBlockRecord.variant == variant.value)
    with translate_storage_errors():
        result = await session.execute(query)
    count, max_index, size, files = result.one()
    return int(count), -1 if max_index is None else int(max_index), int(size), int(files)


def _apply_rollups(dataset: Dataset, variant: BlockVariant, size: int, files: int) -> None:
    if variant is BlockVariant.ORIGINAL:
        dataset.size = size
        dataset.number_of_files = files
    else:
        dataset.packed_size = size
        dataset.number_of_files_archived = files
    dataset.updated_at = datetime.now(UTC)


async def ingest_manifest(
    session: AsyncSession,
    pid: str,
    entries: Sequence[ManifestEntry],
    variant: BlockVariant = BlockVariant.ORIGINAL,
    *,
    limits: BlockLimits,
    archive_id: str | None = None,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> list[ManifestBlockRecord]:
    """Append a file listing to a dataset as newly sealed blocks.

    The new blocks and the dataset's roll-ups (``size``/``number_of_files``
    for the original listing, ``packed_size``/``number_of_files_archived``
    for the archived one) are committed together.  If another writer
    appends concurrently, the whole step is replayed on fresh state.

    Args:
        session: Async database session.
        pid: Dataset PID.
        entries: File entries in listing order.
        variant: Which listing the entries belong to.
        limits: Per-block byte and file ceilings.
        archive_id: Archival system identifier stored on archived blocks.
        retry_attempts: Attempts when losing a concurrent write race.

    Returns:
        The newly sealed block records, in index order.

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
        ConcurrentModificationError: If every attempt lost the race.
    """
    if not entries:
        return []

    async def _apply() -> list[ManifestBlockRecord]:
        dataset = await require_dataset(session, pid)
        _, max_index, size, files = await _variant_stats(session, pid, variant)

        blocks = partition_entries(entries, limits, start_index=max_index + 1)
        records = [
            ManifestBlockRecord.from_block(
                pid,
                variant,
                block,
                archive_id=archive_id if variant is BlockVariant.ARCHIVED else None,
            )
            for block in blocks
        ]
        session.add_all(records)

        added_size = sum(record.block_size for record in records)
        added_files = sum(record.file_count for record in records)
        _apply_rollups(dataset, variant, size + added_size, files + added_files)

        await commit_or_rollback(session)
        oversize = sum(1 for record in records if record.oversize)
        logger.info(
            f"Sealed {len(records)} {variant} block(s) for {pid} "
            f"({added_files} files, {added_size} bytes, {oversize} oversize)"
        )
        return records

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


async def list_blocks(
    session: AsyncSession,
    pid: str,
    variant: BlockVariant = BlockVariant.ORIGINAL,
) -> list[ManifestBlockRecord]:
    """Return a dataset's sealed blocks for one listing, ordered by index.

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
    """
    await require_dataset(session, pid)
    query = (
        select(ManifestBlockRecord)
        .where(ManifestBlockRecord.dataset_pid == pid, ManifestBlockRecord.variant == variant.value)
        .order_by(ManifestBlockRecord.block_index)
    )
    with translate_storage_errors():
        result = await session.execute(query)
    return list(result.scalars().all())


async def manifest_totals(
    session: AsyncSession,
    pid: str,
    variant: BlockVariant = BlockVariant.ORIGINAL,
    *,
    retry_attempts: int = DEFAULT_READ_ATTEMPTS,
) -> ManifestTotals:
    """Summarize one listing straight from its blocks."""

    async def _read() -> ManifestTotals:
        await require_dataset(session, pid)
        count, _, size, files = await _variant_stats(session, pid, variant)
        return ManifestTotals(dataset_pid=pid, variant=variant, block_count=count, total_size=size, total_files=files)

    return await run_read_with_retry(_read, attempts=retry_attempts)


async def total_size(
    session: AsyncSession,
    pid: str,
    variant: BlockVariant = BlockVariant.ORIGINAL,
    *,
    retry_attempts: int = DEFAULT_READ_ATTEMPTS,
) -> int:
    """Sum of block sizes for one listing."""
    totals = await manifest_totals(session, pid, variant, retry_attempts=retry_attempts)
    return totals.total_size


async def total_files(
    session: AsyncSession,
    pid: str,
    variant: BlockVariant = BlockVariant.ORIGINAL,
    *,
    retry_attempts: int = DEFAULT_READ_ATTEMPTS,
) -> int:
    """Sum of block file counts for one listing."""
    totals = await manifest_totals(session, pid, variant, retry_attempts=retry_attempts)
    return totals.total_files


async def recompute_rollups(
    session: AsyncSession,
    pid: str,
    *,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> Dataset:
    """Rebuild a dataset's size and file-count roll-ups from its sealed blocks.

    Returns:
        The dataset, with roll-ups matching its blocks.
    """

    async def _apply() -> Dataset:
        dataset = await require_dataset(session, pid)
        before = (dataset.size, dataset.number_of_files, dataset.packed_size, dataset.number_of_files_archived)
        _, _, size, files = await _variant_stats(session, pid, BlockVariant.ORIGINAL)
        _, _, packed_size, archived_files = await _variant_stats(session, pid, BlockVariant.ARCHIVED)
        after = (size, files, packed_size, archived_files)
        if before == after:
            return dataset
        _apply_rollups(dataset, BlockVariant.ORIGINAL, size, files)
        _apply_rollups(dataset, BlockVariant.ARCHIVED, packed_size, archived_files)
        await commit_or_rollback(session)
        logger.warning(f"Repaired roll-ups for {pid}: {before} -> {after}")
        return dataset

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)
