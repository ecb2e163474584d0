"""Catalog schema commands, driving Alembic programmatically."""

import asyncio
from pathlib import Path

import typer
from loguru import logger

db_app = typer.Typer()

_CONFIG_OPTION = typer.Option(Path("alembic.ini"), "--config", "-c", help="Alembic configuration file")


def _alembic_config(path: Path):  # type: ignore[no-untyped-def]
    from alembic.config import Config

    if not path.is_file():
        typer.echo(f"Error: Alembic config {path} not found", err=True)
        raise typer.Exit(code=1)
    return Config(str(path))


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Migrate the catalog schema up to the target revision."""
    from alembic import command

    logger.info(f"Upgrading catalog schema to {revision}")
    command.upgrade(_alembic_config(config_path), revision)
    logger.info("Catalog schema upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Roll the catalog schema back to the target revision."""
    from alembic import command

    logger.info(f"Downgrading catalog schema to {revision}")
    command.downgrade(_alembic_config(config_path), revision)
    logger.info("Catalog schema downgrade complete")


@db_app.command()
def current(config_path: Path = _CONFIG_OPTION) -> None:
    """Show the revision the catalog schema is at."""
    from alembic import command

    command.current(_alembic_config(config_path), verbose=True)


@db_app.command("create-all")
def create_all(
    stamp: bool = typer.Option(True, "--stamp/--no-stamp", help="Stamp the new schema as the head revision"),
    config_path: Path = _CONFIG_OPTION,
) -> None:
    """Create every catalog table directly from the models (development catalogs)."""
    asyncio.run(_create_all())
    if stamp:
        from alembic import command

        command.stamp(_alembic_config(config_path), "head")
    typer.echo("Catalog tables created")


async def _create_all() -> None:
    from dataset_catalog.core.config import get_settings
    from dataset_catalog.core.database import dispose_engine, init_engine
    from dataset_catalog.models import Dataset  # noqa: F401
    from dataset_catalog.models.base import Base

    settings = get_settings()
    engine = init_engine(settings.database_url, schema=settings.database_schema)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await dispose_engine()
