"""Job store migration commands using Alembic programmatically."""

from typing import TYPE_CHECKING, Annotated

import typer
from loguru import logger

if TYPE_CHECKING:
    from alembic.config import Config

db_app = typer.Typer()

ConfigOption = Annotated[str, typer.Option("--config", "-c", help="Path to alembic.ini")]


def _alembic_config(path: str) -> "Config":
    from alembic.config import Config

    return Config(path)


@db_app.command()
def upgrade(
    revision: Annotated[str, typer.Argument(help="Target revision")] = "head",
    sql: Annotated[bool, typer.Option("--sql", help="Print the migration SQL instead of applying it")] = False,
    config: ConfigOption = "alembic.ini",
) -> None:
    """Create or migrate the sync_jobs table up to the target revision."""
    from alembic import command

    if not sql:
        logger.info(f"Upgrading job store to {revision}")
    command.upgrade(_alembic_config(config), revision, sql=sql)
    if not sql:
        logger.info("Job store upgrade complete")


@db_app.command()
def downgrade(
    revision: Annotated[str, typer.Argument(help="Target revision")] = "-1",
    config: ConfigOption = "alembic.ini",
) -> None:
    """Roll the job store back to the target revision."""
    from alembic import command

    logger.info(f"Downgrading job store to {revision}")
    command.downgrade(_alembic_config(config), revision)


@db_app.command()
def current(config: ConfigOption = "alembic.ini") -> None:
    """Show the job store's current revision."""
    from alembic import command

    command.current(_alembic_config(config), verbose=True)
