"""Archival lifecycle CLI commands."""

import asyncio
from datetime import UTC, datetime

import typer

from dataset_catalog.cli.common import catalog_session, fail
from dataset_catalog.lib.lifecycle import Lifecycle, LifecycleEvent

lifecycle_app = typer.Typer(name="lifecycle", help="Report archival events and inspect dataset lifecycles.")


def _as_utc(value: datetime | None) -> datetime | None:
    """Command-line times without an offset are taken as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _print_lifecycle(pid: str, lifecycle: Lifecycle) -> None:
    typer.echo(f"{pid}: {lifecycle.state}")
    typer.echo(
        f"  archivable={lifecycle.archivable} retrievable={lifecycle.retrievable} "
        f"publishable={lifecycle.publishable} on_central_disk={lifecycle.is_on_central_disk}"
    )
    if lifecycle.last_event:
        typer.echo(f"  last event: {lifecycle.last_event}")
    for state, at in lifecycle.transitioned_at.items():
        typer.echo(f"  {state:24s} {at.isoformat()}")
    if lifecycle.archive_status_message:
        typer.echo(f"  archive status: {lifecycle.archive_status_message}")
    if lifecycle.retrieve_status_message:
        typer.echo(f"  retrieve status: {lifecycle.retrieve_status_message}")
    if lifecycle.archive_retention_time:
        typer.echo(f"  retain archive until: {lifecycle.archive_retention_time.isoformat()}")
    if lifecycle.date_of_disk_purging:
        typer.echo(f"  disk purge on: {lifecycle.date_of_disk_purging.isoformat()}")


@lifecycle_app.command("event")
def event_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    event: LifecycleEvent = typer.Argument(..., help="Event reported by the archival system"),
    message: str | None = typer.Option(None, "--message", "-m", help="Status message to store"),
    at: datetime | None = typer.Option(None, "--at", help="Event time (ISO 8601, defaults to now)"),
) -> None:
    """Apply a lifecycle event to a dataset."""
    asyncio.run(_event(pid, event, message, _as_utc(at)))


async def _event(pid: str, event: LifecycleEvent, message: str | None, at: datetime | None) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.lib.lifecycle import InvalidTransitionError
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.lifecycle_service import apply_lifecycle_event

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            dataset, changed = await apply_lifecycle_event(
                session, pid, event, at=at, message=message, retry_attempts=settings.write_retry_attempts
            )
        except (DatasetNotFoundError, InvalidTransitionError, ConcurrentModificationError) as exc:
            raise fail(exc) from exc
        lifecycle = dataset.get_lifecycle()

    if not changed:
        typer.echo(f"{pid} is already {lifecycle.state}; nothing to do.")
        return
    _print_lifecycle(pid, lifecycle)


@lifecycle_app.command("show")
def show_command(pid: str = typer.Argument(..., help="Dataset PID")) -> None:
    """Show a dataset's lifecycle state, flags and transition times."""
    asyncio.run(_show(pid))


async def _show(pid: str) -> None:
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.lifecycle_service import get_lifecycle

    async with catalog_session() as session:
        try:
            lifecycle = await get_lifecycle(session, pid)
        except DatasetNotFoundError as exc:
            raise fail(exc) from exc
    _print_lifecycle(pid, lifecycle)


@lifecycle_app.command("retention")
def retention_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    retain_until: datetime | None = typer.Option(None, "--retain-until", help="Archive retention time"),
    purge_on: datetime | None = typer.Option(None, "--purge-on", help="Date the disk copy will be purged"),
) -> None:
    """Record retention and purge dates."""
    if retain_until is None and purge_on is None:
        typer.echo("Error: pass --retain-until and/or --purge-on", err=True)
        raise typer.Exit(code=1)
    asyncio.run(_retention(pid, _as_utc(retain_until), _as_utc(purge_on)))


async def _retention(pid: str, retain_until: datetime | None, purge_on: datetime | None) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.lifecycle_service import set_retention

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            dataset = await set_retention(
                session,
                pid,
                archive_retention_time=retain_until,
                date_of_disk_purging=purge_on,
                retry_attempts=settings.write_retry_attempts,
            )
        except (DatasetNotFoundError, ConcurrentModificationError) as exc:
            raise fail(exc) from exc
        lifecycle = dataset.get_lifecycle()
    _print_lifecycle(pid, lifecycle)
