"""Typer CLI root application."""

import typer

from dataset_catalog.core.config import get_settings
from dataset_catalog.core.logging import setup_logging

app = typer.Typer(name="dataset-catalog", help="Scientific dataset catalog CLI")


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(
        settings.log_level,
        log_dir=settings.log_dir,
        json_logs=settings.log_json,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


def _register_subcommands() -> None:
    """Register all CLI subcommand groups."""
    from dataset_catalog.cli.dataset_cmd import dataset_app
    from dataset_catalog.cli.db_cmd import db_app
    from dataset_catalog.cli.lifecycle_cmd import lifecycle_app
    from dataset_catalog.cli.manifest_cmd import manifest_app
    from dataset_catalog.cli.publication_cmd import publication_app

    app.add_typer(db_app, name="db", help="Database migration commands")
    app.add_typer(dataset_app, name="dataset", help="Dataset record commands")
    app.add_typer(manifest_app, name="manifest", help="File manifest commands")
    app.add_typer(lifecycle_app, name="lifecycle", help="Archival lifecycle commands")
    app.add_typer(publication_app, name="publication", help="Published data and DOI commands")


_register_subcommands()
