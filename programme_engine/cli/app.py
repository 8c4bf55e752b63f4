"""
Command-line interface for the programme progression engine.

Provides enrollment, day completion and fasting management on top of the
same engine the HTTP API uses. ``--memory`` swaps PostgreSQL for an
in-process store, which together with ``--programmes`` is handy for trying
out a programme definition locally.
"""
from contextlib import contextmanager
from datetime import datetime
import json as jsonlib
import pathlib
from typing import Any, Dict, Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table
from typer import Argument, Option
from typing_extensions import Annotated

from programme_engine.application.engine import ProgressionEngine
from programme_engine.application.exceptions import ProgrammeEngineError
from programme_engine.domain.entities import enrollment_key
from programme_engine.domain.repositories import RecordStore
from programme_engine.infrastructure import log_utils
from programme_engine.infrastructure.di_container import build_container, get_container
from programme_engine.infrastructure.memory_store import InMemoryRecordStore

console = Console()

app = typer.Typer(
    name="programme-engine",
    help="CLI for the programme progression engine: enrollments, daily progress and fasting.",
    add_completion=False,
)


def _load_programme_file(path: pathlib.Path) -> List[Dict[str, Any]]:
    data = jsonlib.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("programmes", [data])
    if not isinstance(data, list):
        raise typer.BadParameter(f"{path} must contain a programme object or a list of programmes")
    return data


def _build_store() -> RecordStore:
    return get_container().resolve(RecordStore)


def _build_engine(memory: bool = False, programmes: Optional[pathlib.Path] = None) -> ProgressionEngine:
    container = build_container({RecordStore: InMemoryRecordStore()}) if memory else get_container()
    engine = container.resolve(ProgressionEngine)
    if programmes is not None:
        engine.register_programmes(_load_programme_file(programmes))
    return engine


def _engine(ctx: typer.Context) -> ProgressionEngine:
    options = ctx.obj or {}
    if "engine" not in options:
        options["engine"] = _build_engine(
            memory=options.get("memory", False),
            programmes=options.get("programmes"),
        )
        ctx.obj = options
    return options["engine"]


def _parse_date(value: Optional[str]):
    if value is None:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise typer.BadParameter(f"Invalid date '{value}', expected YYYY-MM-DD")


@contextmanager
def _reported_errors() -> Iterator[None]:
    try:
        yield
    except ProgrammeEngineError as exc:
        console.print(f"[red]Error ({exc.reason}):[/red] {exc}")
        log_utils.warn(f"CLI command failed: {exc}")
        raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    memory: Annotated[bool, Option("--memory", help="Use an in-process store instead of PostgreSQL.")] = False,
    programmes: Annotated[
        Optional[pathlib.Path],
        Option("--programmes", help="JSON file of programme definitions to register first."),
    ] = None,
) -> None:
    ctx.obj = {"memory": memory, "programmes": programmes}


@app.command("init-db")
def init_db(ctx: typer.Context) -> None:
    """Create the record store schema (idempotent)."""
    memory = (ctx.obj or {}).get("memory", False)
    if memory:
        typer.echo("In-memory store needs no schema.")
        raise typer.Exit(code=0)
    store = _build_store()
    try:
        store.ensure_schema()
    except Exception as exc:
        log_utils.error(f"Schema creation failed: {exc}")
        typer.echo(f"Schema creation failed: {exc}")
        raise typer.Exit(code=1)
    typer.echo("Record store schema is ready.")


@app.command("add-programmes")
def add_programmes(
    ctx: typer.Context,
    path: Annotated[pathlib.Path, Argument(help="JSON file with one programme or a list of programmes.")],
) -> None:
    """Register (or update) programme definitions."""
    engine = _engine(ctx)
    with _reported_errors():
        registered = engine.register_programmes(_load_programme_file(path))
    for programme in registered:
        typer.echo(f"Registered {programme.id} ({programme.duration_days} days)")


@app.command()
def enroll(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[str, Argument(help="Programme identifier.")],
    start_date_str: Annotated[Optional[str], Option("--start-date", help="Start date in YYYY-MM-DD format. Defaults to today.")] = None,
    fasting_type: Annotated[Optional[str], Option("--fasting", help="none, no_food, time_window or daniel_fast.")] = None,
    window: Annotated[Optional[str], Option("--window", help="Eating window HH:MM-HH:MM for time_window fasting.")] = None,
) -> None:
    """Enroll a user, or start a new round of a paused/completed enrollment."""
    engine = _engine(ctx)
    with _reported_errors():
        enrollment = engine.enroll(
            user_id,
            programme_id,
            start_date=_parse_date(start_date_str),
            fasting_type=fasting_type,
            fasting_window=window,
        )
    typer.echo(
        f"Enrolled {user_id} in {programme_id} (round {enrollment.enrollment_round}, "
        f"starting {enrollment.start_date.isoformat()})."
    )


@app.command()
def complete(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[str, Argument(help="Programme identifier.")],
    day: Annotated[int, Argument(help="Day number to mark complete.")],
    reflection: Annotated[Optional[str], Option("--reflection", help="Reflection answers as a JSON object.")] = None,
) -> None:
    """Mark a day complete."""
    reflection_response = None
    if reflection:
        try:
            reflection_response = jsonlib.loads(reflection)
        except ValueError:
            raise typer.BadParameter("--reflection must be valid JSON")
    engine = _engine(ctx)
    with _reported_errors():
        result = engine.mark_day_complete(
            enrollment_key(user_id, programme_id),
            day,
            reflection_response=reflection_response,
        )
    enrollment = result.enrollment
    note = "" if result.newly_completed else " (already complete)"
    typer.echo(
        f"Day {day} recorded{note}: {len(enrollment.completed_days)}/{enrollment.duration_days} "
        f"days, {enrollment.completion_percentage}%."
    )
    if result.programme_completed:
        typer.echo("Programme complete!")


@app.command()
def pause(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[str, Argument(help="Programme identifier.")],
) -> None:
    """Pause an active enrollment."""
    engine = _engine(ctx)
    with _reported_errors():
        engine.pause(enrollment_key(user_id, programme_id))
    typer.echo(f"Paused {programme_id} for {user_id}.")


@app.command()
def resume(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[str, Argument(help="Programme identifier.")],
) -> None:
    """Resume a paused enrollment."""
    engine = _engine(ctx)
    with _reported_errors():
        engine.resume(enrollment_key(user_id, programme_id))
    typer.echo(f"Resumed {programme_id} for {user_id}.")


@app.command("change-fasting")
def change_fasting(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[str, Argument(help="Programme identifier.")],
    fasting_type: Annotated[str, Argument(help="none, no_food, time_window or daniel_fast.")],
    window: Annotated[Optional[str], Option("--window", help="Eating window HH:MM-HH:MM.")] = None,
) -> None:
    """Change the fasting selection without losing progress."""
    engine = _engine(ctx)
    with _reported_errors():
        change = engine.change_fasting_type(enrollment_key(user_id, programme_id), fasting_type, window)
    if not change.changed:
        typer.echo("Fasting selection unchanged.")
        return
    old = change.old_type or "none"
    if change.old_window:
        old = f"{old} {change.old_window}"
    new = change.new_type if not change.new_window else f"{change.new_type} {change.new_window}"
    typer.echo(f"Fasting changed: {old} -> {new}")


@app.command()
def status(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[Optional[str], Argument(help="Programme identifier; omit to list all enrollments.")] = None,
) -> None:
    """Show progress for one enrollment, or a summary of all of a user's enrollments."""
    engine = _engine(ctx)
    with _reported_errors():
        if programme_id is None:
            enrollments = engine.list_enrollments(user_id)
            table = Table(title=f"Enrollments for {user_id}")
            for column in ("Programme", "Status", "Round", "Start", "Progress"):
                table.add_column(column)
            for enrollment in enrollments:
                table.add_row(
                    enrollment.programme_id,
                    enrollment.status.value,
                    str(enrollment.enrollment_round),
                    enrollment.start_date.isoformat(),
                    f"{enrollment.completion_percentage}%",
                )
            console.print(table)
            return
        snapshot = engine.progress(enrollment_key(user_id, programme_id))

    table = Table(title=f"{programme_id} for {user_id}", show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    completed = ", ".join(str(day) for day in snapshot.completed_days) or "-"
    rows = [
        ("Status", snapshot.status),
        ("Round", str(snapshot.enrollment_round)),
        ("Start date", snapshot.start_date.isoformat()),
        ("Completed days", completed),
        ("Progress", f"{snapshot.completion_percentage}% ({snapshot.days_remaining} days remaining)"),
        ("Unlocked", f"{snapshot.unlocked_day_count}/{snapshot.duration_days}"),
        ("Next day", str(snapshot.next_day_to_show)),
        ("Next unlock", snapshot.next_unlock_date.isoformat() if snapshot.next_unlock_date else "-"),
    ]
    if snapshot.fasting_type:
        rows.append(("Fasting", f"{snapshot.fasting_type} {snapshot.fasting_window or ''}".strip()))
    for label, value in rows:
        table.add_row(label, value)
    console.print(table)


@app.command("fasting-stats")
def fasting_stats(
    ctx: typer.Context,
    user_id: Annotated[str, Argument(help="User identifier.")],
    programme_id: Annotated[str, Argument(help="Programme identifier.")],
) -> None:
    """Show fasting compliance for an enrollment."""
    engine = _engine(ctx)
    with _reported_errors():
        stats = engine.fasting_stats(user_id, enrollment_key(user_id, programme_id))
    typer.echo(f"Logged days: {stats.total_days}")
    typer.echo(f"Food fast:    {stats.food_compliance_rate:.0f}%")
    typer.echo(f"Media fast:   {stats.media_compliance_rate:.0f}%")
    typer.echo(f"Comfort fast: {stats.comfort_compliance_rate:.0f}%")


if __name__ == "__main__":
    app()
