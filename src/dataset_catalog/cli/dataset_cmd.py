"""Dataset record CLI commands."""

import asyncio
import getpass
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from loguru import logger
from pydantic import ValidationError

from dataset_catalog.cli.common import catalog_session, echo_model, fail, load_json_file

if TYPE_CHECKING:
    from dataset_catalog.schemas.dataset import DatasetFilter

dataset_app = typer.Typer(name="dataset", help="Create, inspect, and edit dataset records.")


@dataset_app.command("create")
def create_command(
    record_file: Path = typer.Argument(..., help="JSON file with the dataset record", exists=True, dir_okay=False),
) -> None:
    """Catalog a new dataset from a JSON record."""
    asyncio.run(_create(record_file))


async def _create(record_file: Path) -> None:
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.lib.dataset import DatasetValidationError, pid_factory
    from dataset_catalog.schemas.dataset import DatasetCreateRequest, DatasetDetailResponse
    from dataset_catalog.services.dataset_service import DuplicateDatasetError, PidExhaustedError, create_dataset

    try:
        request = DatasetCreateRequest.model_validate(load_json_file(record_file))
    except ValidationError as exc:
        raise fail(exc) from exc

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            dataset = await create_dataset(
                session,
                request,
                new_pid=pid_factory(settings.pid_prefix),
                max_pid_attempts=settings.pid_max_attempts,
            )
        except (DatasetValidationError, DuplicateDatasetError, PidExhaustedError) as exc:
            raise fail(exc) from exc
        echo_model(DatasetDetailResponse.model_validate(dataset))


@dataset_app.command("show")
def show_command(pid: str = typer.Argument(..., help="Dataset PID")) -> None:
    """Print a dataset record with its lifecycle and history."""
    asyncio.run(_show(pid))


async def _show(pid: str) -> None:
    from dataset_catalog.schemas.dataset import DatasetDetailResponse
    from dataset_catalog.services.dataset_service import get_dataset

    async with catalog_session() as session:
        dataset = await get_dataset(session, pid)
        if dataset is None:
            typer.echo(f"Error: dataset '{pid}' not found", err=True)
            raise typer.Exit(code=1)
        echo_model(DatasetDetailResponse.model_validate(dataset))


@dataset_app.command("update")
def update_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    patch_file: Path = typer.Argument(..., help="JSON file with the fields to change", exists=True, dir_okay=False),
    actor: str | None = typer.Option(None, "--actor", help="Identity recorded in the history (defaults to the OS user)"),
) -> None:
    """Apply a partial update and record each changed field in the history."""
    asyncio.run(_update(pid, patch_file, actor or getpass.getuser()))


async def _update(pid: str, patch_file: Path, actor: str) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.lib.dataset import DatasetValidationError
    from dataset_catalog.schemas.dataset import DatasetDetailResponse, DatasetUpdateRequest
    from dataset_catalog.services.dataset_service import DatasetNotFoundError, update_dataset

    try:
        request = DatasetUpdateRequest.model_validate(load_json_file(patch_file))
    except ValidationError as exc:
        raise fail(exc) from exc

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            dataset = await update_dataset(
                session, pid, request, actor=actor, retry_attempts=settings.write_retry_attempts
            )
        except (DatasetNotFoundError, DatasetValidationError, ConcurrentModificationError) as exc:
            raise fail(exc) from exc
        echo_model(DatasetDetailResponse.model_validate(dataset))


@dataset_app.command("list")
def list_command(
    owner: str | None = typer.Option(None, "--owner", help="Filter by owner"),
    owner_group: str | None = typer.Option(None, "--owner-group", help="Filter by owner group"),
    dataset_type: str | None = typer.Option(None, "--type", help="raw or derived"),
    state: str | None = typer.Option(None, "--state", help="Filter by lifecycle state"),
    published: bool | None = typer.Option(None, "--published/--unpublished", help="Filter by publication flag"),
    folder_prefix: str | None = typer.Option(None, "--folder-prefix", help="Filter by source folder prefix"),
    sort_by: str = typer.Option("pid", "--sort-by", help="pid, creation_time, size, owner or updated_at"),
    limit: int = typer.Option(50, "--limit", min=1, max=1000, help="Rows per page"),
    cursor: str | None = typer.Option(None, "--cursor", help="Cursor printed by the previous page"),
) -> None:
    """List datasets one page at a time."""
    from dataset_catalog.schemas.dataset import DatasetFilter

    try:
        filters = DatasetFilter(
            owner=owner,
            owner_group=owner_group,
            type=dataset_type,
            lifecycle_state=state,
            is_published=published,
            source_folder_prefix=folder_prefix,
        )
    except ValidationError as exc:
        raise fail(exc) from exc
    if sort_by not in ("pid", "creation_time", "size", "owner", "updated_at"):
        typer.echo(f"Error: cannot sort by '{sort_by}'", err=True)
        raise typer.Exit(code=1)
    asyncio.run(_list(filters, sort_by, limit, cursor))


async def _list(filters: "DatasetFilter", sort_by: str, limit: int, cursor: str | None) -> None:
    from dataset_catalog.schemas.dataset import DatasetPage, DatasetSummary
    from dataset_catalog.services.dataset_service import list_datasets

    async with catalog_session() as session:
        try:
            rows, next_cursor = await list_datasets(session, filters, sort_by=sort_by, limit=limit, cursor=cursor)
        except ValueError as exc:
            raise fail(exc) from exc
        page = DatasetPage(items=[DatasetSummary.model_validate(row) for row in rows], next_cursor=next_cursor)

    if not page.items:
        typer.echo("No datasets found.")
        return
    for item in page.items:
        typer.echo(
            f"{item.pid:40s}  {item.type:8s}  {item.lifecycle_state:24s}  "
            f"{item.number_of_files:>8,} files  {item.size:>16,} B  {item.owner}"
        )
    if page.next_cursor:
        typer.echo(f"\nNext page: --cursor {page.next_cursor}")
    logger.debug(f"Listed {len(page.items)} datasets")


@dataset_app.command("history")
def history_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    field: str | None = typer.Option(None, "--field", help="Only show changes to this field"),
) -> None:
    """Show the change history of a dataset."""
    asyncio.run(_history(pid, field))


async def _history(pid: str, field: str | None) -> None:
    from dataset_catalog.services.dataset_service import DatasetNotFoundError, get_history

    async with catalog_session() as session:
        try:
            entries = await get_history(session, pid, field)
        except DatasetNotFoundError as exc:
            raise fail(exc) from exc

    if not entries:
        typer.echo("No recorded changes.")
        return
    for entry in entries:
        typer.echo(
            f"{entry.changed_at.isoformat()}  {entry.changed_by:16s}  {entry.field}: "
            f"{entry.old_value!r} -> {entry.new_value!r}"
        )
