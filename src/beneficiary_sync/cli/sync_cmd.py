"""CLI commands for running and inspecting index sync jobs."""

import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Annotated, Any

import typer

from beneficiary_sync.core.errors import SyncError

if TYPE_CHECKING:
    from beneficiary_sync.models.sync_job import SyncJob
    from beneficiary_sync.services.sync_engine import SyncEngine

sync_app = typer.Typer()


@asynccontextmanager
async def _engine(*, validate_source: bool = False) -> AsyncIterator["SyncEngine"]:
    """Initialize the database and yield a sync engine, tearing both down after.

    With ``validate_source`` the source column layout is checked before yielding.
    """
    from beneficiary_sync.core.config import get_settings
    from beneficiary_sync.core.database import dispose_engine, init_engine
    from beneficiary_sync.services.sync_engine import create_sync_engine

    settings = get_settings()
    init_engine(settings.database_url, source_database_url=settings.resolved_source_database_url)
    engine = create_sync_engine(settings)
    try:
        if validate_source:
            await engine.validate_source()
        yield engine
    finally:
        await engine.close()
        await dispose_engine()


def _print_job(job: "SyncJob") -> None:
    total = job.total_records if job.total_records is not None else "?"
    typer.echo(f"Job {job.id} [{job.job_type}]")
    typer.echo(f"  Status:     {job.status}")
    typer.echo(f"  Progress:   {job.processed_records}/{total} ({job.progress_percentage:.2f}%)")
    typer.echo(f"  Success:    {job.success_count}")
    typer.echo(f"  Failure:    {job.failure_count}")
    typer.echo(f"  Offset:     {job.current_offset}")
    if job.processing_speed is not None:
        typer.echo(f"  Speed:      {job.processing_speed:.1f} rec/s")
    if job.estimated_time_remaining is not None:
        typer.echo(f"  ETA:        {job.estimated_time_remaining}s")
    if job.triggered_by:
        typer.echo(f"  Triggered:  {job.triggered_by}")
    if job.error_message:
        typer.echo(f"  Error:      {job.error_message}")
    if job.is_resumable:
        typer.echo(f"  Resume with: sync resume {job.id}")
    elif job.is_active:
        typer.echo(f"  Cancel with: sync cancel {job.id}")


async def _recover_stale(engine: "SyncEngine") -> None:
    for job_id in await engine.recover_stale_jobs():
        typer.echo(f"Marked stale job {job_id} FAILED; resume it with: sync resume {job_id}", err=True)


def _run(coro: Coroutine[Any, Any, None]) -> None:
    """Run an async command, mapping engine errors to exit code 1."""
    try:
        asyncio.run(coro)
    except SyncError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@sync_app.command("start")
def start(
    triggered_by: Annotated[str, typer.Option("--triggered-by", help="Actor recorded on the job")] = "cli",
) -> None:
    """Run a full sync to completion in this process."""
    _run(_start_impl(triggered_by))


async def _start_impl(triggered_by: str) -> None:
    async with _engine(validate_source=True) as engine:
        await _recover_stale(engine)
        job = await engine.start_full_sync(triggered_by)
        typer.echo(f"Full sync job created: {job.id}")
        await engine.wait()
        _print_job(await engine.get_status(job.id))


@sync_app.command("resume")
def resume(
    job_id: Annotated[str, typer.Argument(help="ID of a FAILED or STALLED job")],
    triggered_by: Annotated[str, typer.Option("--triggered-by", help="Actor recorded on the job")] = "cli",
) -> None:
    """Resume a failed or stalled job from its last checkpoint."""
    _run(_resume_impl(job_id, triggered_by))


async def _resume_impl(job_id: str, triggered_by: str) -> None:
    async with _engine(validate_source=True) as engine:
        await _recover_stale(engine)
        job = await engine.resume(job_id, triggered_by)
        typer.echo(f"Resuming job {job.id} from offset {job.current_offset}")
        await engine.wait()
        _print_job(await engine.get_status(job.id))


@sync_app.command("status")
def status(
    job_id: Annotated[str, typer.Argument(help="Sync job ID")],
    as_json: Annotated[bool, typer.Option("--json", help="Print the job as JSON")] = False,
) -> None:
    """Show one sync job."""
    _run(_status_impl(job_id, as_json))


async def _status_impl(job_id: str, as_json: bool) -> None:
    from beneficiary_sync.schemas.sync_job import SyncJobResponse

    async with _engine() as engine:
        job = await engine.get_status(job_id)
        if as_json:
            typer.echo(SyncJobResponse.model_validate(job).model_dump_json(indent=2))
        else:
            _print_job(job)


@sync_app.command("active")
def active() -> None:
    """List pending and running jobs."""
    _run(_active_impl())


async def _active_impl() -> None:
    async with _engine() as engine:
        jobs = await engine.list_active()
        if not jobs:
            typer.echo("No active sync jobs.")
        for job in jobs:
            _print_job(job)


@sync_app.command("recent")
def recent(
    limit: Annotated[int, typer.Option("--limit", help="Number of jobs to show")] = 10,
) -> None:
    """List the most recent jobs."""
    _run(_recent_impl(limit))


async def _recent_impl(limit: int) -> None:
    async with _engine() as engine:
        jobs = await engine.list_recent(limit)
        if not jobs:
            typer.echo("No sync jobs.")
        for job in jobs:
            _print_job(job)


@sync_app.command("cancel")
def cancel(job_id: Annotated[str, typer.Argument(help="Sync job ID")]) -> None:
    """Cancel a pending or running job."""
    _run(_cancel_impl(job_id))


async def _cancel_impl(job_id: str) -> None:
    async with _engine() as engine:
        if await engine.cancel(job_id):
            typer.echo(f"Job {job_id} cancelled.")
        else:
            typer.echo(f"Job {job_id} is not active; nothing to cancel.", err=True)
            raise typer.Exit(code=1)


@sync_app.command("fail")
def fail(
    job_id: Annotated[str, typer.Argument(help="ID of a PENDING or RUNNING job whose worker is gone")],
    reason: Annotated[str | None, typer.Option("--reason", help="Error message recorded on the job")] = None,
) -> None:
    """Mark an orphaned job FAILED so it can be resumed from its checkpoint."""
    _run(_fail_impl(job_id, reason))


async def _fail_impl(job_id: str, reason: str | None) -> None:
    async with _engine() as engine:
        job = await engine.fail_job(job_id, reason)
        _print_job(job)


@sync_app.command("one")
def one(key: Annotated[str, typer.Argument(help="Beneficiary registration ID")]) -> None:
    """Index a single beneficiary."""
    _run(_one_impl(key))


async def _one_impl(key: str) -> None:
    async with _engine(validate_source=True) as engine:
        if await engine.sync_one(key):
            typer.echo(f"Beneficiary {key} indexed.")
        else:
            typer.echo(f"Beneficiary {key} was not indexed.", err=True)
            raise typer.Exit(code=1)


@sync_app.command("delete")
def delete(document_id: Annotated[str, typer.Argument(help="Index document ID")]) -> None:
    """Remove a single document from the index."""
    _run(_delete_impl(document_id))


async def _delete_impl(document_id: str) -> None:
    async with _engine() as engine:
        if await engine.delete_one(document_id):
            typer.echo(f"Document {document_id} deleted.")
        else:
            typer.echo(f"Document {document_id} was not deleted.", err=True)
            raise typer.Exit(code=1)


@sync_app.command("check")
def check() -> None:
    """Compare eligible source rows with indexed documents."""
    _run(_check_impl())


async def _check_impl() -> None:
    async with _engine() as engine:
        result = await engine.sync_status()
        typer.echo(f"Database records: {result.database_count}")
        typer.echo(f"Indexed documents: {result.index_count}")
        typer.echo(f"Missing:          {result.missing_count}")
        typer.echo(f"In sync:          {'yes' if result.in_sync else 'no'}")


@sync_app.command("health")
def health(
    as_json: Annotated[bool, typer.Option("--json", help="Print the report as JSON")] = False,
) -> None:
    """Report index reachability and sync activity."""
    _run(_health_impl(as_json))


async def _health_impl(as_json: bool) -> None:
    async with _engine() as engine:
        report = await engine.health()
    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return
    typer.echo(f"Elasticsearch:     {'up' if report.elasticsearch_available else 'down'}")
    typer.echo(f"Full sync running: {'yes' if report.full_sync_running else 'no'}")
    typer.echo(f"Active jobs:       {report.active_jobs}")
    if report.latest_full_sync_id is not None:
        typer.echo(f"Latest full sync:  {report.latest_full_sync_id} ({report.latest_full_sync_status})")
    typer.echo(f"Workers:           {report.workers} ({report.queued_tasks} queued)")
    if not report.elasticsearch_available:
        raise typer.Exit(code=1)


@sync_app.command("exists")
def exists(key: Annotated[str, typer.Argument(help="Beneficiary registration ID")]) -> None:
    """Check whether a beneficiary exists in the source store."""
    _run(_exists_impl(key))


async def _exists_impl(key: str) -> None:
    async with _engine() as engine:
        result = await engine.exists(key)
    if result.exists_in_database:
        typer.echo(f"Beneficiary {result.ben_reg_id} exists in the database.")
    else:
        typer.echo(f"Beneficiary {result.ben_reg_id} not found in the database.", err=True)
        raise typer.Exit(code=1)


@sync_app.command("schedule")
def schedule(
    interval: Annotated[
        int | None,
        typer.Option("--interval", help="Seconds between full syncs (defaults to settings)"),
    ] = None,
) -> None:
    """Run the periodic full-sync loop until interrupted."""
    _run(_schedule_impl(interval))


async def _schedule_impl(interval: int | None) -> None:
    from beneficiary_sync.core.config import get_settings

    settings = get_settings()
    if not settings.sync_schedule_enabled:
        typer.echo("Scheduled sync is disabled (set SYNC_SCHEDULE_ENABLED=true).", err=True)
        raise typer.Exit(code=1)
    seconds = interval or settings.sync_schedule_interval_seconds
    async with _engine(validate_source=True) as engine:
        await _recover_stale(engine)
        await engine.scheduled_full_sync_loop(seconds)
