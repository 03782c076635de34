"""Command-line interface for the time tracker."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import typer

from .config import ClientSettings
from .errors import TimekeeperError
from .models import Company
from .paths import get_db_path, get_local_store_path
from .server_runner import run_server
from .store import ApiRecordStore, FallbackRecordStore, LocalRecordStore
from .tracker import ManualBlock, TimeTracker

app = typer.Typer(help="Multi-company time tracker.")

_state: dict[str, ClientSettings] = {}


@app.callback(no_args_is_help=True)
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logs."),
    api_url: Optional[str] = typer.Option(
        None, "--api-url", help="Base URL of the Timekeeper web API."
    ),
    timeout: float = typer.Option(
        5.0, "--timeout", min=0.5, help="Seconds to wait for the web API."
    ),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    _state["settings"] = ClientSettings.from_values(api_url=api_url, timeout_seconds=timeout)


def _tracker() -> TimeTracker:
    store = FallbackRecordStore(
        ApiRecordStore(_state.get("settings") or ClientSettings()),
        LocalRecordStore(get_local_store_path()),
    )
    return TimeTracker(store)


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def web(
    host: str = typer.Option("127.0.0.1", "--host", help="Interface to bind the API."),
    port: int = typer.Option(
        8765, "--port", min=1, max=65535, help="TCP port for the API."
    ),
    db_path: Optional[Path] = typer.Option(
        None, "--db", path_type=Path, help="Location of the SQLite database."
    ),
) -> None:
    """Serve the web API."""
    run_server(host=host, port=port, db_path=db_path or get_db_path())


@app.command()
def start(
    company: Company = typer.Argument(..., help="Company to track time for."),
    project_id: str = typer.Argument(..., help="Project id."),
    home_office: bool = typer.Option(False, "--home-office", help="Tag as home office."),
) -> None:
    """Start the timer."""
    try:
        entry = _tracker().start(company, project_id, home_office=home_office)
    except (TimekeeperError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Started at {entry.start_time.isoformat()} ({entry.id})")


@app.command()
def stop() -> None:
    """Stop the running timer."""
    try:
        entry = _tracker().stop()
    except (TimekeeperError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Stopped after {entry.duration_seconds} seconds")


@app.command()
def switch(project_id: str = typer.Argument(..., help="Project id to switch to.")) -> None:
    """Continue the running session on another project."""
    try:
        entry = _tracker().switch_project(project_id)
    except (TimekeeperError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Now tracking {entry.company.value} ({entry.id})")


@app.command()
def backfill(
    date: str = typer.Argument(..., help="Day (YYYY-MM-DD) to backfill."),
    blocks: List[str] = typer.Argument(
        ..., help="Blocks as PROJECT_ID=HH:MM-HH:MM, in local time."
    ),
    home_office: bool = typer.Option(False, "--home-office", help="Tag as home office."),
) -> None:
    """Record completed entries for a past day."""
    try:
        day = datetime.strptime(date, "%Y-%m-%d").date()
        parsed = [_parse_block(value) for value in blocks]
        created = _tracker().backfill(day, parsed, home_office=home_office)
    except (TimekeeperError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Created {len(created)} entries for {day.isoformat()}")


@app.command("sick-day")
def sick_day(
    company: Company = typer.Argument(..., help="Company to book the sick day for."),
    date: Optional[str] = typer.Option(
        None, "--date", help="Date (YYYY-MM-DD). Defaults to today."
    ),
) -> None:
    """Record a sick day."""
    try:
        tracker = _tracker()
        if date:
            day = datetime.strptime(date, "%Y-%m-%d").date()
        else:
            day = datetime.now(tracker.settings.timezone).date()
        tracker.record_sick_day(day, company)
    except (TimekeeperError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"Sick day recorded for {day.isoformat()}")


@app.command()
def stats() -> None:
    """Print week totals and the overtime balance."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_tracker()).print_stats()


@app.command()
def history(
    days: int = typer.Option(7, "--days", min=1, help="Number of days to show."),
) -> None:
    """Print the most recent days with per-company totals."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_tracker()).print_history(days)


@app.command()
def todos(
    show_done: bool = typer.Option(False, "--done", help="Also list finished todos."),
) -> None:
    """List todos."""
    from .reporting import SummaryPrinter

    SummaryPrinter(_tracker()).print_todos(show_done=show_done)


@app.command()
def done(
    todo_id: str = typer.Argument(..., help="Todo id."),
    reopen: bool = typer.Option(False, "--reopen", help="Mark the todo open again."),
) -> None:
    """Mark a todo as done (or open again)."""
    try:
        todo = _tracker().set_todo_status(todo_id, "open" if reopen else "done")
    except (TimekeeperError, ValueError) as exc:
        _fail(exc)
    typer.echo(f"{todo.title}: {todo.status}")


def _parse_block(value: str) -> ManualBlock:
    project_id, _, span = value.partition("=")
    start, _, end = span.partition("-")
    if not project_id or not start or not end:
        raise ValueError(f"Invalid block {value!r}, expected PROJECT_ID=HH:MM-HH:MM")
    return ManualBlock(project_id=project_id, start=start, end=end)
