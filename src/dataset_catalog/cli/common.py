"""Helpers shared by CLI command groups."""

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from dataset_catalog.core.config import Settings, get_settings


@asynccontextmanager
async def catalog_session(settings: Settings | None = None) -> AsyncIterator[AsyncSession]:
    """Open the engine for one command and yield a session, disposing afterwards.

    A storage outage anywhere in the command exits with code 1.
    """
    from dataset_catalog.core.database import (
        StorageUnavailableError,
        dispose_engine,
        get_session_factory,
        init_engine,
    )

    settings = settings or get_settings()
    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        factory = get_session_factory()
        async with factory() as session:
            yield session
    except StorageUnavailableError as exc:
        raise fail(exc) from exc
    finally:
        await dispose_engine()


def load_json_file(path: Path) -> Any:
    """Read a JSON document, exiting with code 1 when it cannot be parsed."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        typer.echo(f"Error: cannot read {path}: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def echo_model(model: BaseModel) -> None:
    """Print a response schema as indented JSON."""
    typer.echo(model.model_dump_json(indent=2))


def fail(exc: Exception) -> typer.Exit:
    """Report a domain error and return the Exit to raise."""
    logger.debug(f"Command failed: {type(exc).__name__}: {exc}")
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)
