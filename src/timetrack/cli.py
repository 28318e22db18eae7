"""Typer CLI for timetrack."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Annotated

import typer
from result import Err, Result

from timetrack.config import Config
from timetrack.services.container import ServiceContainer
from timetrack.services.recovery import RecoveryOutcome

if TYPE_CHECKING:
    from timetrack.errors import TimeTrackError
    from timetrack.models.snapshot import SessionEntry

app = typer.Typer(
    name="timetrack",
    help="Per-project task time tracking shared between processes.",
    no_args_is_help=True,
)

ProjectArg = Annotated[Path, typer.Argument(help="Project folder")]


@app.callback()
def main(
    ctx: typer.Context,
    data_dir: Annotated[
        Path | None,
        typer.Option("--data-dir", help="Directory holding timetrack state"),
    ] = None,
    idle_threshold: Annotated[
        int,
        typer.Option("--idle-threshold", help="Seconds of inactivity before a session is stale"),
    ] = 300,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log to stderr")] = False,
) -> None:
    """Track working time per project and task."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    ctx.obj = Config(
        data_dir=data_dir or Path.home() / ".timetrack",
        idle_threshold_seconds=idle_threshold,
    )


@app.command()
def start(
    ctx: typer.Context,
    project: ProjectArg,
    task: Annotated[str, typer.Argument(help="Task name")],
    end: Annotated[
        str | None,
        typer.Option("--end", help="End time (HH:MM) for an entry left unfinished by a crash"),
    ] = None,
) -> None:
    """Start a timer."""
    asyncio.run(_do_start(ctx.obj, str(project), task, end))


@app.command()
def stop(ctx: typer.Context, project: ProjectArg) -> None:
    """Stop the running timer."""
    asyncio.run(_do_stop(ctx.obj, str(project)))


@app.command()
def switch(
    ctx: typer.Context,
    project: ProjectArg,
    task: Annotated[str, typer.Argument(help="Task to switch to")],
) -> None:
    """Stop the running timer and start another task right away."""
    asyncio.run(_do_switch(ctx.obj, str(project), task))


@app.command()
def status(ctx: typer.Context, project: ProjectArg) -> None:
    """Show the running timer, if any."""
    asyncio.run(_do_status(ctx.obj, str(project)))


@app.command()
def pending(ctx: typer.Context, project: ProjectArg) -> None:
    """List entries that were never stopped."""
    asyncio.run(_do_pending(ctx.obj, str(project)))


@app.command()
def resolve(
    ctx: typer.Context,
    project: ProjectArg,
    entry_start: Annotated[str, typer.Argument(help="Start timestamp of the pending entry")],
    end: Annotated[str, typer.Argument(help="End time, HH:MM or HH:MM:SS")],
) -> None:
    """Close a pending entry with a manual end time."""
    asyncio.run(_do_resolve(ctx.obj, str(project), entry_start, end))


@app.command()
def recover(ctx: typer.Context, project: ProjectArg) -> None:
    """Stop a session abandoned by a crashed or sleeping process."""
    asyncio.run(_do_recover(ctx.obj, str(project)))


@app.command()
def projects(ctx: typer.Context) -> None:
    """List tracked projects, most recently used first."""
    asyncio.run(_do_projects(ctx.obj))


@app.command()
def summary(
    ctx: typer.Context,
    start_date: Annotated[str, typer.Argument(help="First day, YYYY-MM-DD")],
    end_date: Annotated[str, typer.Argument(help="Last day, YYYY-MM-DD")],
) -> None:
    """Total tracked time per project and task for a date range."""
    asyncio.run(_do_summary(ctx.obj, start_date, end_date))


@app.command()
def watch(ctx: typer.Context, project: ProjectArg) -> None:
    """Own the running timer: show elapsed time and keep activity fresh."""
    try:
        asyncio.run(_do_watch(ctx.obj, str(project)))
    except KeyboardInterrupt:
        typer.echo("")


def _format_seconds(seconds: int) -> str:
    return str(timedelta(seconds=seconds))


def _unwrap[T](result: Result[T, TimeTrackError]) -> T:
    if isinstance(result, Err):
        typer.echo(f"Error: {result.err_value}", err=True)
        raise typer.Exit(1)
    return result.ok_value


async def _prompt_end_time(entry: SessionEntry) -> str | None:
    answer = typer.prompt(
        f"'{entry.task}' started {entry.start} was never stopped. End time (HH:MM)",
        default="",
        show_default=False,
    )
    return answer.strip() or None


async def _recover_abandoned(container: ServiceContainer, project: str) -> None:
    """Stop a session whose owner stopped reporting activity."""
    outcome = _unwrap(await container.recovery.recover(project))
    if outcome is RecoveryOutcome.RECOVERED:
        typer.echo("Stopped a timer abandoned by another process.")


async def _do_start(config: Config, project: str, task: str, end: str | None) -> None:
    container = await ServiceContainer.create(config, notify=typer.echo)
    try:
        await _recover_abandoned(container, project)

        async def answer(entry: SessionEntry) -> str | None:
            if end is not None:
                return end
            return await _prompt_end_time(entry)

        _unwrap(await container.tracker.start(project, task, resolver=answer))
    finally:
        await container.close()


async def _do_stop(config: Config, project: str) -> None:
    container = await ServiceContainer.create(config, notify=typer.echo)
    try:
        if await container.tracker.observe(project) is None:
            typer.echo("No timer is running.")
            return
        _unwrap(await container.tracker.stop())
    finally:
        await container.close()


async def _do_switch(config: Config, project: str, task: str) -> None:
    container = await ServiceContainer.create(config, notify=typer.echo)
    try:
        await container.tracker.observe(project)
        _unwrap(await container.tracker.switch_task(task))
    finally:
        await container.close()


async def _do_status(config: Config, project: str) -> None:
    container = await ServiceContainer.create(config, notify=typer.echo)
    try:
        await _recover_abandoned(container, project)
        session = await container.tracker.observe(project)
        if session is None:
            typer.echo("No timer is running.")
            return
        elapsed = session.elapsed_seconds(container.clock())
        typer.echo(f"{session.project_name}: '{session.task}' running for {_format_seconds(elapsed)}")
    finally:
        await container.close()


async def _do_pending(config: Config, project: str) -> None:
    container = await ServiceContainer.create(config)
    try:
        entries = container.tracker.list_pending(project)
        if not entries:
            typer.echo("No pending entries.")
        for entry in entries:
            typer.echo(f"{entry.start}  {entry.task}")
    finally:
        await container.close()


async def _do_resolve(config: Config, project: str, entry_start: str, end: str) -> None:
    container = await ServiceContainer.create(config)
    try:
        entry = _unwrap(await container.tracker.resolve_pending(project, entry_start, end))
        typer.echo(f"Closed '{entry.task}' at {entry.end} ({_format_seconds(entry.seconds)})")
    finally:
        await container.close()


async def _do_recover(config: Config, project: str) -> None:
    container = await ServiceContainer.create(config, notify=typer.echo)
    try:
        outcome = _unwrap(await container.recovery.recover(project))
        typer.echo(f"Recovery: {outcome.value}")
    finally:
        await container.close()


async def _do_projects(config: Config) -> None:
    container = await ServiceContainer.create(config)
    try:
        for entry in _unwrap(await container.project_service.list_projects()):
            typer.echo(f"{entry.id}  {entry.name:<24} {entry.path}")
    finally:
        await container.close()


async def _do_summary(config: Config, start_date: str, end_date: str) -> None:
    container = await ServiceContainer.create(config)
    try:
        totals = _unwrap(await container.project_service.summarize(start_date, end_date))
        if not totals:
            typer.echo("No tracked time in range.")
        for project_totals in totals:
            typer.echo(f"{project_totals.project_name}: {_format_seconds(project_totals.total_seconds)}")
            for task, seconds in sorted(project_totals.tasks.items()):
                typer.echo(f"  {task}: {_format_seconds(seconds)}")
    finally:
        await container.close()


async def _do_watch(
    config: Config,
    project: str,
    interval: float = 1.0,
    max_ticks: int | None = None,
) -> None:
    """Claim the running session and tick it until it ends or ``max_ticks`` pass."""
    container = await ServiceContainer.create(config, notify=typer.echo)
    try:
        await _recover_abandoned(container, project)
        session = await container.tracker.observe(project)
        if session is None:
            typer.echo("No timer is running.")
            return
        container.monitor.claim_ownership(session.project_id)
        recheck_every = max(1, int(config.activity_persist_interval_seconds / interval))
        ticks = 0
        while max_ticks is None or ticks < max_ticks:
            if _unwrap(await container.recovery.check_idle()):
                typer.echo("\nTimer stopped after an idle gap.")
                return
            elapsed = await container.tracker.tick()
            if elapsed is None:
                typer.echo("Timer stopped.")
                return
            typer.echo(f"\r{session.task}: {_format_seconds(elapsed)}", nl=False)
            ticks += 1
            if ticks % recheck_every == 0 and await container.tracker.observe(project) is None:
                typer.echo("\nTimer stopped elsewhere.")
                return
            await asyncio.sleep(interval)
        typer.echo("")
    finally:
        await container.close()
