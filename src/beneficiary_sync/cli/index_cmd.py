"""CLI commands for managing the beneficiary search index."""

import asyncio
from typing import TYPE_CHECKING, Annotated

import typer

if TYPE_CHECKING:
    from beneficiary_sync.lib.sink import ElasticsearchBulkSink

index_app = typer.Typer()


def _build_sink() -> "ElasticsearchBulkSink":
    from beneficiary_sync.core.config import get_settings
    from beneficiary_sync.lib.sink import ElasticsearchBulkSink, create_client

    settings = get_settings()
    client = create_client(
        settings.elasticsearch_url,
        username=settings.elasticsearch_username,
        password=settings.elasticsearch_password,
        request_timeout=settings.elasticsearch_timeout,
    )
    return ElasticsearchBulkSink(client, settings.elasticsearch_index)


@index_app.command("create")
def create(
    recreate: Annotated[bool, typer.Option("--recreate", help="Delete and recreate an existing index")] = False,
) -> None:
    """Create the index with the beneficiary mapping."""
    asyncio.run(_create_impl(recreate))


async def _create_impl(recreate: bool) -> None:
    sink = _build_sink()
    try:
        created = await sink.create_index(recreate=recreate)
        if created:
            typer.echo(f"Index {sink.index} created.")
        else:
            typer.echo(f"Index {sink.index} already exists (use --recreate to rebuild).")
    finally:
        await sink.close()


@index_app.command("optimize")
def optimize() -> None:
    """Switch the index to search settings and merge segments after a bulk load."""
    asyncio.run(_optimize_impl())


async def _optimize_impl() -> None:
    sink = _build_sink()
    try:
        await sink.optimize_for_search()
        typer.echo(f"Index {sink.index} optimized for search.")
    finally:
        await sink.close()
