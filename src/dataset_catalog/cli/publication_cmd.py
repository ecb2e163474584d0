"""Published data and DOI registration CLI commands."""

import asyncio
import getpass
import uuid
from pathlib import Path

import typer
from pydantic import ValidationError

from dataset_catalog.cli.common import catalog_session, echo_model, fail, load_json_file
from dataset_catalog.models.published_data import PublicationStatus

publication_app = typer.Typer(name="publication", help="Register datasets for citation and mint DOIs.")


@publication_app.command("register")
def register_command(
    pids: list[str] = typer.Argument(..., help="Dataset PIDs to publish together"),
    metadata_file: Path = typer.Option(
        ..., "--metadata", help="JSON file with citation metadata", exists=True, dir_okay=False
    ),
    actor: str | None = typer.Option(None, "--actor", help="Registering user (defaults to the OS user)"),
) -> None:
    """Create a pending registration for a set of archived datasets."""
    asyncio.run(_register(pids, metadata_file, actor or getpass.getuser()))


async def _register(pids: list[str], metadata_file: Path, actor: str) -> None:
    from dataset_catalog.schemas.publication import PublicationMetadata, PublicationResponse
    from dataset_catalog.services.publication_service import (
        AlreadyRegisteredError,
        DatasetNotPublishableError,
        register_publication,
    )

    try:
        metadata = PublicationMetadata.model_validate(load_json_file(metadata_file))
    except ValidationError as exc:
        raise fail(exc) from exc

    async with catalog_session() as session:
        try:
            publication = await register_publication(session, pids, metadata, actor=actor)
        except (DatasetNotPublishableError, AlreadyRegisteredError, ValueError) as exc:
            raise fail(exc) from exc
        echo_model(PublicationResponse.model_validate(publication))


@publication_app.command("confirm")
def confirm_command(publication_id: uuid.UUID = typer.Argument(..., help="Published data id")) -> None:
    """Mint the DOI for a pending registration."""
    asyncio.run(_confirm(publication_id))


async def _confirm(publication_id: uuid.UUID) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.lib.doi import DoiMintingError, get_minter
    from dataset_catalog.schemas.publication import PublicationResponse
    from dataset_catalog.services.publication_service import (
        AlreadyRegisteredError,
        PublicationNotFoundError,
        PublicationStateError,
        confirm_registration,
    )

    settings = get_settings()
    try:
        minter = get_minter(settings)
    except ValueError as exc:
        raise fail(exc) from exc

    async with catalog_session(settings) as session:
        try:
            publication = await confirm_registration(
                session, publication_id, minter, retry_attempts=settings.write_retry_attempts
            )
        except DoiMintingError as exc:
            hint = " (temporary, try again later)" if exc.retryable else ""
            typer.echo(f"Error: DOI registration failed{hint}: {exc}", err=True)
            raise typer.Exit(code=2 if exc.retryable else 1) from exc
        except (
            PublicationNotFoundError,
            AlreadyRegisteredError,
            PublicationStateError,
            ConcurrentModificationError,
        ) as exc:
            raise fail(exc) from exc
        echo_model(PublicationResponse.model_validate(publication))


@publication_app.command("publish")
def publish_command(
    publication_id: uuid.UUID = typer.Argument(..., help="Published data id"),
    actor: str | None = typer.Option(None, "--actor", help="Recorded in dataset histories (defaults to the OS user)"),
) -> None:
    """Make a registered publication public and flag its datasets as published."""
    asyncio.run(_publish(publication_id, actor or getpass.getuser()))


async def _publish(publication_id: uuid.UUID, actor: str) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.schemas.publication import PublicationResponse
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.publication_service import (
        PublicationNotFoundError,
        PublicationStateError,
        publish_publication,
    )

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            publication = await publish_publication(
                session, publication_id, actor=actor, retry_attempts=settings.write_retry_attempts
            )
        except (
            PublicationNotFoundError,
            PublicationStateError,
            DatasetNotFoundError,
            ConcurrentModificationError,
        ) as exc:
            raise fail(exc) from exc
        echo_model(PublicationResponse.model_validate(publication))


@publication_app.command("cancel")
def cancel_command(publication_id: uuid.UUID = typer.Argument(..., help="Published data id")) -> None:
    """Cancel a pending registration."""
    asyncio.run(_cancel(publication_id))


async def _cancel(publication_id: uuid.UUID) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.services.publication_service import (
        PublicationNotFoundError,
        PublicationStateError,
        cancel_registration,
    )

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            await cancel_registration(session, publication_id, retry_attempts=settings.write_retry_attempts)
        except (PublicationNotFoundError, PublicationStateError, ConcurrentModificationError) as exc:
            raise fail(exc) from exc
    typer.echo(f"Cancelled {publication_id}")


@publication_app.command("show")
def show_command(publication_id: uuid.UUID = typer.Argument(..., help="Published data id")) -> None:
    """Print a published data record."""
    asyncio.run(_show(publication_id))


async def _show(publication_id: uuid.UUID) -> None:
    from dataset_catalog.schemas.publication import PublicationResponse
    from dataset_catalog.services.publication_service import PublicationNotFoundError, require_publication

    async with catalog_session() as session:
        try:
            publication = await require_publication(session, publication_id)
        except PublicationNotFoundError as exc:
            raise fail(exc) from exc
        echo_model(PublicationResponse.model_validate(publication))


@publication_app.command("list")
def list_command(
    status: PublicationStatus | None = typer.Option(None, "--status", help="Filter by registration status"),
    page: int = typer.Option(1, "--page", min=1, help="Page number"),
    page_size: int = typer.Option(20, "--page-size", min=1, max=100, help="Records per page"),
) -> None:
    """List published data records, newest first."""
    asyncio.run(_list(status, page, page_size))


async def _list(status: PublicationStatus | None, page: int, page_size: int) -> None:
    from dataset_catalog.services.publication_service import list_publications

    async with catalog_session() as session:
        records, total = await list_publications(session, status=status, page=page, page_size=page_size)
        rows = [(record.id, record.status, record.doi, len(record.pid_array), record.title) for record in records]

    if not rows:
        typer.echo("No published data found.")
        return
    for record_id, record_status, doi, count, title in rows:
        typer.echo(f"{record_id}  {record_status:22s}  {doi or '-':40s}  {count:>4d} datasets  {title}")
    typer.echo(f"\nShowing {len(rows)} of {total}")
