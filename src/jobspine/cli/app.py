"""
Root Typer application for the jobspine CLI.

Commands:
    jobs   declared jobs and their resolved schedules
    store  job and trigger keys persisted in the job store
    run    start the scheduler and block until interrupted
"""

from __future__ import annotations

import sys
import threading

import typer
from typer import Typer

from jobspine.cli.utils import console, err_console, fail, output_rows
from jobspine.errors import JobSpineError

app = Typer(
    name="jobspine",
    help="jobspine - declarative cron jobs on a persistent scheduler.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from importlib.metadata import PackageNotFoundError
        from importlib.metadata import version as pkg_version

        try:
            v = pkg_version("jobspine")
        except PackageNotFoundError:
            from jobspine import __version__ as v
        typer.echo(f"jobspine {v}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """jobspine CLI - inspect declarations, the job store, or run the scheduler."""


def _log_to_stderr(settings) -> None:
    """Keep stdout clean for tables and --json output."""
    from jobspine.logging import configure_logging

    configure_logging(level=settings.log_level, json_format=settings.log_format == "json", stream=sys.stderr)


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("jobs")
def list_jobs(
    modules: list[str] | None = typer.Argument(None, help="Modules to scan (default: JOBSPINE_JOB_MODULES)"),
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List declared jobs with their resolved schedules."""
    from jobspine.scheduling import JobDeclarationRegistry, discover, job_key_for, trigger_key_for
    from jobspine.scheduling.resolver import resolve_schedule
    from jobspine.settings import get_settings

    settings = get_settings()
    _log_to_stderr(settings)
    try:
        definitions = JobDeclarationRegistry(discover(*(modules or settings.job_modules))).definitions()
        config = settings.config_source()
        rows = [
            {
                "identifier": d.identifier,
                "job_key": job_key_for(d.identifier).name,
                "trigger_key": trigger_key_for(d.identifier).name,
                "cron": d.schedule_expression,
                "resolved": resolve_schedule(d.schedule_expression, config).expression,
                "entry_point": d.entry_point,
            }
            for d in definitions
        ]
    except JobSpineError as e:
        fail(e)
    output_rows(rows, as_json=json_out, title="Declared jobs")


@app.command("store")
def list_store(
    json_out: bool = typer.Option(False, "--json"),
) -> None:
    """List job and trigger keys persisted in the job store."""
    from jobspine.scheduling import APSchedulerEngine, DispatchShim, InstanceRegistry
    from jobspine.scheduling.engine import alias_for
    from jobspine.settings import get_settings

    settings = get_settings()
    _log_to_stderr(settings)
    engine = APSchedulerEngine(settings)
    try:
        # Paused with nothing to write: opens the store without changing it.
        engine.initialize([], DispatchShim(InstanceRegistry()))
        rows = [
            {
                "group": group,
                "job_key": stored.id,
                "trigger_key": stored.name,
                "next_run_time": stored.next_run_time,
            }
            for group in engine.job_groups()
            for stored in engine.scheduler.get_jobs(jobstore=alias_for(group))
        ]
    finally:
        engine.shutdown(wait=False)
    output_rows(rows, as_json=json_out, title="Job store")


def _block_until_interrupted() -> None:
    threading.Event().wait()


@app.command("run")
def run(
    modules: list[str] | None = typer.Argument(None, help="Modules to scan (default: JOBSPINE_JOB_MODULES)"),
) -> None:
    """Start the scheduler and block until Ctrl+C."""
    from jobspine.logging import configure_logging
    from jobspine.scheduling import bootstrap_from_settings
    from jobspine.settings import get_settings

    settings = get_settings()
    if modules:
        settings = settings.model_copy(update={"job_modules": list(modules)})
    configure_logging(level=settings.log_level, json_format=settings.log_format == "json")

    try:
        handle = bootstrap_from_settings(settings)
    except JobSpineError as e:
        fail(e)

    if handle is None:
        err_console.print("[yellow]Scheduler is disabled (JOBSPINE_ENABLED=false); nothing to run.[/yellow]")
        raise typer.Exit(code=0)

    console.print(
        f"[green]Scheduler running[/green] with {len(handle.bound_keys)} job(s); "
        f"{len(handle.deleted_keys)} orphan(s) removed.  Press Ctrl+C to stop."
    )
    try:
        _block_until_interrupted()
    except KeyboardInterrupt:
        console.print("[dim]Stopping...[/dim]")
    finally:
        handle.shutdown()
