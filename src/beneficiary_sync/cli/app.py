"""Typer CLI root application."""

import typer

from beneficiary_sync.core.config import get_settings
from beneficiary_sync.core.logging import setup_logging

app = typer.Typer(name="beneficiary-sync", help="Beneficiary search index sync CLI")


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir)


def _register_subcommands() -> None:
    """Register all CLI subcommand groups."""
    from beneficiary_sync.cli.db_cmd import db_app
    from beneficiary_sync.cli.index_cmd import index_app
    from beneficiary_sync.cli.sync_cmd import sync_app

    app.add_typer(sync_app, name="sync", help="Full and single-record sync commands")
    app.add_typer(index_app, name="index", help="Search index management commands")
    app.add_typer(db_app, name="db", help="Job store migration commands")


_register_subcommands()
