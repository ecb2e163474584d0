"""Retry policies for per-record optimistic concurrency and read-only queries.

Every dataset row carries a ``row_version`` counter.  A writer that loses the
version check gets ``StaleDataError`` on flush; the whole read-modify-write is
then replayed against fresh state.  Read-only roll-ups may also be retried
when the store is briefly unavailable.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from dataset_catalog.core.database import StorageUnavailableError

T = TypeVar("T")


class ConcurrentModificationError(RuntimeError):
    """Raised when a record kept changing underneath a writer for every attempt."""


def _log_conflict(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Concurrent write conflict on attempt {}, retrying: {}",
        retry_state.attempt_number,
        type(exc).__name__ if exc else "unknown",
    )


async def run_with_version_retry(
    session: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int,
) -> T:
    """Run a read-modify-write coroutine, replaying it on optimistic conflicts.

    The operation must re-read everything it depends on, mutate, and commit.
    On a lost version check (or a racing unique-key insert) the session is
    rolled back and the operation is run again.

    Args:
        session: The database session the operation uses.
        operation: Zero-argument coroutine factory performing the full cycle.
        attempts: Maximum number of attempts.

    Returns:
        Whatever the operation returns.

    Raises:
        ConcurrentModificationError: If every attempt lost the race.
    """

    async def _attempt() -> T:
        try:
            return await operation()
        except (StaleDataError, IntegrityError):
            await session.rollback()
            raise

    try:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type((StaleDataError, IntegrityError)),
            stop=stop_after_attempt(attempts),
            wait=wait_random_exponential(multiplier=0.01, max=0.5),
            before_sleep=_log_conflict,
        ):
            with attempt:
                return await _attempt()
    except RetryError as e:
        msg = f"Record modified concurrently; gave up after {attempts} attempts"
        raise ConcurrentModificationError(msg) from e.last_attempt.exception()
    msg = "retry loop exited without a result"  # pragma: no cover
    raise RuntimeError(msg)  # pragma: no cover


async def run_read_with_retry(operation: Callable[[], Awaitable[T]], *, attempts: int) -> T:
    """Run a read-only coroutine, retrying with backoff while storage is unavailable."""
    async for attempt in AsyncRetrying(
        retry=retry_if_exception_type(StorageUnavailableError),
        stop=stop_after_attempt(attempts),
        wait=wait_random_exponential(multiplier=0.05, max=2),
        reraise=True,
    ):
        with attempt:
            return await operation()
    msg = "retry loop exited without a result"  # pragma: no cover
    raise RuntimeError(msg)  # pragma: no cover
