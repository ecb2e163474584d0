"""Dataset catalog service — create, read, update, and list dataset records.

Every write is a single read-modify-write transaction guarded by the row's
optimistic version counter.
"""

from collections.abc import AsyncIterator
from datetime import UTC, datetime
from typing import Any

from loguru import logger
from sqlalchemy import Select, and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dataset_catalog.core.concurrency import run_with_version_retry
from dataset_catalog.core.database import commit_or_rollback, translate_storage_errors
from dataset_catalog.lib.dataset import (
    PidFactory,
    derive_dataset_name,
    ensure_valid,
    normalize_source_folder,
    pid_factory,
)
from dataset_catalog.lib.history import HistoryEntry, detect_field_changes
from dataset_catalog.lib.lifecycle import Lifecycle
from dataset_catalog.models.dataset import Dataset
from dataset_catalog.schemas.common import decode_cursor, encode_cursor
from dataset_catalog.schemas.dataset import DatasetCreateRequest, DatasetFilter, DatasetUpdateRequest, SortKey

DEFAULT_PID_ATTEMPTS = 5
DEFAULT_WRITE_ATTEMPTS = 5

_LIST_FIELDS = (
    "access_groups",
    "shared_with",
    "keywords",
    "techniques",
    "relationships",
    "input_datasets",
    "used_software",
)
_DATETIME_SORT_KEYS = {"creation_time", "updated_at"}


class DatasetNotFoundError(LookupError):
    """Raised when no dataset has the requested PID."""


class DuplicateDatasetError(ValueError):
    """Raised when a caller-supplied PID is already cataloged."""


class PidExhaustedError(RuntimeError):
    """Raised when every generated PID collided with an existing record."""


def record_dict(dataset: Dataset) -> dict[str, Any]:
    """Column values of a dataset as a plain dict."""
    return {column.name: getattr(dataset, column.name) for column in Dataset.__table__.columns}


async def _pid_taken(session: AsyncSession, pid: str) -> bool:
    with translate_storage_errors():
        result = await session.execute(select(Dataset.pid).where(Dataset.pid == pid))
    return result.scalar_one_or_none() is not None


async def get_dataset(session: AsyncSession, pid: str) -> Dataset | None:
    """Fetch a dataset by PID, always reflecting the latest committed state.

    Args:
        session: Async database session.
        pid: Dataset PID.

    Returns:
        The Dataset or None if not found.
    """
    with translate_storage_errors():
        result = await session.execute(
            select(Dataset).where(Dataset.pid == pid).execution_options(populate_existing=True)
        )
    return result.scalar_one_or_none()


async def require_dataset(session: AsyncSession, pid: str) -> Dataset:
    """Like :func:`get_dataset` but raises DatasetNotFoundError when absent."""
    dataset = await get_dataset(session, pid)
    if dataset is None:
        msg = f"Dataset '{pid}' not found"
        raise DatasetNotFoundError(msg)
    return dataset


async def get_history(session: AsyncSession, pid: str, field: str | None = None) -> list[HistoryEntry]:
    """Change history of a dataset in insertion order, optionally for one field.

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
    """
    ledger = (await require_dataset(session, pid)).get_history()
    return ledger.for_field(field) if field else list(ledger)


def _build_record(request: DatasetCreateRequest) -> dict[str, Any]:
    """Normalize and derive fields for a new record (no PID yet)."""
    data = request.model_dump(exclude={"pid"})
    data["source_folder"] = normalize_source_folder(data["source_folder"])
    for field in _LIST_FIELDS:
        if data.get(field) is None:
            data[field] = []
    if data.get("scientific_metadata") is None:
        data["scientific_metadata"] = {}
    if not data.get("dataset_name"):
        data["dataset_name"] = derive_dataset_name(data["source_folder"])
    return data


async def create_dataset(
    session: AsyncSession,
    request: DatasetCreateRequest,
    *,
    new_pid: PidFactory | None = None,
    max_pid_attempts: int = DEFAULT_PID_ATTEMPTS,
) -> Dataset:
    """Catalog a new dataset.

    Validates type-specific required fields, normalizes ``source_folder``,
    derives ``dataset_name`` when absent, zeroes the size roll-ups, and
    starts the lifecycle and an empty history.

    Args:
        session: Async database session.
        request: Dataset creation request.
        new_pid: PID generator used when the request carries none.
        max_pid_attempts: Generated PIDs to try before giving up.

    Returns:
        The persisted Dataset.

    Raises:
        DatasetValidationError: If a required field is missing. Nothing is persisted.
        DuplicateDatasetError: If the supplied PID already exists.
        PidExhaustedError: If every generated PID collided.
    """
    data = _build_record(request)
    ensure_valid(data)

    now = datetime.now(UTC)
    lifecycle = Lifecycle.new(now)

    def build(pid: str) -> Dataset:
        dataset = Dataset(
            pid=pid,
            size=0,
            number_of_files=0,
            packed_size=0,
            number_of_files_archived=0,
            is_published=False,
            history=[],
            **data,
        )
        dataset.set_lifecycle(lifecycle)
        return dataset

    if request.pid is not None:
        if await _pid_taken(session, request.pid):
            msg = f"Dataset '{request.pid}' already exists"
            raise DuplicateDatasetError(msg)
        dataset = build(request.pid)
        session.add(dataset)
        try:
            await commit_or_rollback(session)
        except IntegrityError as e:
            msg = f"Dataset '{request.pid}' already exists"
            raise DuplicateDatasetError(msg) from e
        logger.info(f"Cataloged dataset {dataset.pid} ({dataset.type})")
        return dataset

    generate = new_pid or pid_factory()
    for attempt in range(1, max_pid_attempts + 1):
        candidate = generate()
        if await _pid_taken(session, candidate):
            logger.warning(f"Generated PID {candidate} already exists (attempt {attempt}/{max_pid_attempts})")
            continue
        dataset = build(candidate)
        session.add(dataset)
        try:
            await commit_or_rollback(session)
        except IntegrityError:
            logger.warning(f"Generated PID {candidate} taken concurrently (attempt {attempt}/{max_pid_attempts})")
            continue
        logger.info(f"Cataloged dataset {dataset.pid} ({dataset.type})")
        return dataset

    msg = f"Could not generate a unique PID after {max_pid_attempts} attempts"
    raise PidExhaustedError(msg)


async def update_dataset(
    session: AsyncSession,
    pid: str,
    request: DatasetUpdateRequest,
    *,
    actor: str,
    retry_attempts: int = DEFAULT_WRITE_ATTEMPTS,
) -> Dataset:
    """Apply a partial update, recording one history entry per changed field.

    Fields set to their current value are not changes and produce no entry.
    The merged record is validated before anything is applied, so a failing
    update leaves the stored record untouched.

    Args:
        session: Async database session.
        pid: Dataset PID.
        request: Fields to change (only explicitly set fields are considered).
        actor: Identity recorded as ``changed_by``.
        retry_attempts: Attempts when losing a concurrent write race.

    Returns:
        The updated Dataset.

    Raises:
        DatasetNotFoundError: If the dataset does not exist.
        DatasetValidationError: If the result would violate an invariant.
        ConcurrentModificationError: If every attempt lost the version check.
    """
    patch = request.model_dump(exclude_unset=True)
    if patch.get("source_folder") is not None:
        patch["source_folder"] = normalize_source_folder(patch["source_folder"])
    for field in _LIST_FIELDS:
        if field in patch and patch[field] is None:
            patch[field] = []
    if "scientific_metadata" in patch and patch["scientific_metadata"] is None:
        patch["scientific_metadata"] = {}

    async def _apply() -> Dataset:
        dataset = await require_dataset(session, pid)
        current = record_dict(dataset)
        changes = detect_field_changes(current, patch)
        if not changes:
            return dataset

        ensure_valid(current | {field: new for field, (_, new) in changes.items()})

        now = datetime.now(UTC)
        ledger = dataset.get_history()
        for field, (old, new) in changes.items():
            ledger.record(field, old, new, actor, at=now)
            setattr(dataset, field, new)
        dataset.set_history(ledger)

        await commit_or_rollback(session)
        logger.info(f"Updated dataset {pid}: {', '.join(changes)} by {actor}")
        return dataset

    return await run_with_version_retry(session, _apply, attempts=retry_attempts)


def _apply_filters(query: Select, filters: DatasetFilter | None) -> Select:
    if filters is None:
        return query
    if filters.owner is not None:
        query = query.where(Dataset.owner == filters.owner)
    if filters.owner_group is not None:
        query = query.where(Dataset.owner_group == filters.owner_group)
    if filters.type is not None:
        query = query.where(Dataset.type == filters.type)
    if filters.creation_location is not None:
        query = query.where(Dataset.creation_location == filters.creation_location)
    if filters.lifecycle_state is not None:
        query = query.where(Dataset.lifecycle_state == filters.lifecycle_state)
    if filters.is_published is not None:
        query = query.where(Dataset.is_published.is_(filters.is_published))
    if filters.source_folder_prefix is not None:
        query = query.where(Dataset.source_folder.startswith(filters.source_folder_prefix, autoescape=True))
    if filters.created_after is not None:
        query = query.where(Dataset.creation_time >= filters.created_after)
    if filters.created_before is not None:
        query = query.where(Dataset.creation_time <= filters.created_before)
    return query


async def list_datasets(
    session: AsyncSession,
    filters: DatasetFilter | None = None,
    *,
    sort_by: SortKey = "pid",
    limit: int = 100,
    cursor: str | None = None,
) -> tuple[list[Dataset], str | None]:
    """Fetch one page of datasets using keyset pagination.

    Rows are ordered by ``(sort_by, pid)`` so the cursor stays stable while
    other records are inserted.

    Args:
        session: Async database session.
        filters: Optional field filters.
        sort_by: Column to order by.
        limit: Maximum rows per page.
        cursor: Cursor from the previous page, or None for the first page.

    Returns:
        Tuple of (datasets, next cursor or None when exhausted).

    Raises:
        ValueError: If the cursor is malformed.
    """
    sort_column = getattr(Dataset, sort_by)
    query = _apply_filters(select(Dataset), filters)

    if cursor is not None:
        last_value, last_pid = decode_cursor(cursor)
        if sort_by in _DATETIME_SORT_KEYS:
            last_value = datetime.fromisoformat(last_value)
        query = query.where(
            or_(sort_column > last_value, and_(sort_column == last_value, Dataset.pid > last_pid))
        )

    query = query.order_by(sort_column, Dataset.pid).limit(limit + 1)
    with translate_storage_errors():
        result = await session.execute(query)
    rows = list(result.scalars().all())

    next_cursor = None
    if len(rows) > limit:
        rows = rows[:limit]
        last = rows[-1]
        last_value = getattr(last, sort_by)
        next_cursor = encode_cursor([last_value.isoformat() if isinstance(last_value, datetime) else last_value, last.pid])
    return rows, next_cursor


async def find_datasets(
    session: AsyncSession,
    filters: DatasetFilter | None = None,
    *,
    sort_by: SortKey = "pid",
    page_size: int = 100,
) -> AsyncIterator[Dataset]:
    """Lazily yield every matching dataset, fetching one page at a time."""
    cursor: str | None = None
    while True:
        rows, cursor = await list_datasets(session, filters, sort_by=sort_by, limit=page_size, cursor=cursor)
        for row in rows:
            yield row
        if cursor is None:
            return
