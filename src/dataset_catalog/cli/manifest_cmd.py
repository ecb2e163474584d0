"""File manifest CLI commands."""

import asyncio
from pathlib import Path

import typer
from pydantic import ValidationError

from dataset_catalog.cli.common import catalog_session, echo_model, fail, load_json_file
from dataset_catalog.lib.manifest import BlockVariant

manifest_app = typer.Typer(name="manifest", help="Ingest and inspect dataset file listings.")


@manifest_app.command("ingest")
def ingest_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    listing: Path | None = typer.Option(
        None, "--listing", help="JSON file: {variant, entries: [{path, size, checksum, ...}], archive_id}"
    ),
    scan: Path | None = typer.Option(
        None, "--scan", help="Directory to walk and checksum instead of reading a listing", file_okay=False
    ),
    variant: BlockVariant = typer.Option(BlockVariant.ORIGINAL, "--variant", help="Listing variant for --scan"),
    archive_id: str | None = typer.Option(None, "--archive-id", help="Archival system identifier for --scan"),
) -> None:
    """Append files to a dataset's manifest as newly sealed blocks."""
    asyncio.run(_ingest(pid, listing, scan, variant, archive_id))


async def _ingest(
    pid: str,
    listing: Path | None,
    scan: Path | None,
    variant: BlockVariant,
    archive_id: str | None,
) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.lib.manifest import BlockLimits, scan_directory
    from dataset_catalog.schemas.manifest import ManifestIngestRequest
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.manifest_service import ingest_manifest

    if listing is not None and scan is None:
        try:
            request = ManifestIngestRequest.model_validate(load_json_file(listing))
        except ValidationError as exc:
            raise fail(exc) from exc
        entries = [item.to_entry() for item in request.entries]
        block_variant, block_archive_id = request.variant, request.archive_id
    elif scan is not None and listing is None:
        typer.echo(f"Scanning {scan}...")
        try:
            entries = scan_directory(scan)
        except ValueError as exc:
            raise fail(exc) from exc
        block_variant, block_archive_id = variant, archive_id
    else:
        typer.echo("Error: pass exactly one of --listing or --scan", err=True)
        raise typer.Exit(code=1)

    if not entries:
        typer.echo("No files to ingest.")
        return

    settings = get_settings()
    limits = BlockLimits(max_bytes=settings.max_block_bytes, max_files=settings.max_block_files)
    async with catalog_session(settings) as session:
        try:
            records = await ingest_manifest(
                session,
                pid,
                entries,
                block_variant,
                limits=limits,
                archive_id=block_archive_id,
                retry_attempts=settings.write_retry_attempts,
            )
        except (DatasetNotFoundError, ConcurrentModificationError) as exc:
            raise fail(exc) from exc

    typer.echo(f"Sealed {len(records)} {block_variant} block(s) for {pid}:")
    for record in records:
        flag = "  OVERSIZE" if record.oversize else ""
        typer.echo(f"  #{record.block_index:<5d} {record.file_count:>8,} files  {record.block_size:>16,} B{flag}")


@manifest_app.command("blocks")
def blocks_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    variant: BlockVariant = typer.Option(BlockVariant.ORIGINAL, "--variant", help="Listing variant"),
    entries: bool = typer.Option(False, "--entries", help="Print every block with its file entries as JSON"),
) -> None:
    """List a dataset's sealed blocks."""
    asyncio.run(_blocks(pid, variant, entries))


async def _blocks(pid: str, variant: BlockVariant, show_entries: bool) -> None:
    from dataset_catalog.schemas.manifest import ManifestBlockResponse
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.manifest_service import list_blocks

    async with catalog_session() as session:
        try:
            records = await list_blocks(session, pid, variant)
        except DatasetNotFoundError as exc:
            raise fail(exc) from exc
        blocks = [ManifestBlockResponse.model_validate(record) for record in records]

    if not blocks:
        typer.echo(f"No {variant} blocks for {pid}.")
        return
    for block in blocks:
        if show_entries:
            echo_model(block)
            continue
        flag = "  OVERSIZE" if block.oversize else ""
        typer.echo(
            f"#{block.block_index:<5d} {block.file_count:>8,} files  {block.block_size:>16,} B  "
            f"sealed {block.sealed_at.isoformat()}{flag}"
        )


@manifest_app.command("totals")
def totals_command(
    pid: str = typer.Argument(..., help="Dataset PID"),
    variant: BlockVariant = typer.Option(BlockVariant.ORIGINAL, "--variant", help="Listing variant"),
) -> None:
    """Summarize a listing directly from its blocks."""
    asyncio.run(_totals(pid, variant))


async def _totals(pid: str, variant: BlockVariant) -> None:
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.manifest_service import manifest_totals

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            totals = await manifest_totals(
                session, pid, variant, retry_attempts=settings.read_retry_attempts
            )
        except DatasetNotFoundError as exc:
            raise fail(exc) from exc
    echo_model(totals)


@manifest_app.command("recompute")
def recompute_command(pid: str = typer.Argument(..., help="Dataset PID")) -> None:
    """Rebuild a dataset's size and file counts from its blocks."""
    asyncio.run(_recompute(pid))


async def _recompute(pid: str) -> None:
    from dataset_catalog.core.concurrency import ConcurrentModificationError
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.services.dataset_service import DatasetNotFoundError
    from dataset_catalog.services.manifest_service import recompute_rollups

    settings = get_settings()
    async with catalog_session(settings) as session:
        try:
            dataset = await recompute_rollups(session, pid, retry_attempts=settings.write_retry_attempts)
        except (DatasetNotFoundError, ConcurrentModificationError) as exc:
            raise fail(exc) from exc
        typer.echo(
            f"{pid}: {dataset.number_of_files:,} files, {dataset.size:,} B; "
            f"archived {dataset.number_of_files_archived:,} files, {dataset.packed_size:,} B"
        )
