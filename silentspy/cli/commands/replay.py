"""``silentspy replay EVENTS`` — run a recorded event stream through the spy.

Each line of the input file is one JSON-encoded ``BuildEvent``.  The
condensed protocol output is printed to stdout exactly as a live build
would produce it.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console

from silentspy.config import SpySettings
from silentspy.models.events import BuildEvent
from silentspy.spy import SilentSpy

console = Console(stderr=True)


def load_events(path: Path) -> list[BuildEvent]:
    """Parse a JSON-lines event file; blank lines are ignored."""
    events: list[BuildEvent] = []
    for lineno, raw in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        if not raw.strip():
            continue
        try:
            events.append(BuildEvent.model_validate_json(raw))
        except ValidationError as exc:
            raise ValueError(f"{path}:{lineno}: invalid event: {exc}") from exc
    return events


def replay_cmd(
    events_file: Path = typer.Argument(
        ...,
        exists=True,
        dir_okay=False,
        help="JSON-lines file of recorded build events.",
    ),
    prefix: str = typer.Option(
        "MSE",
        "--prefix",
        "-p",
        help="Marker token opening every protocol line.",
    ),
    trace_lines: int = typer.Option(
        20,
        "--trace-lines",
        "-t",
        min=0,
        help="Stack trace lines kept per failed test.",
    ),
) -> None:
    """Replay recorded build events and print the condensed output.

    Exits with 1 when the replayed build failed and 2 when the spy had to
    fall back to passthrough.
    """
    try:
        events = load_events(events_file)
    except ValueError as exc:
        console.print(f"[bold red]Cannot read events:[/bold red] {exc}")
        raise typer.Exit(code=2)

    settings = SpySettings(
        active=True,
        prefix=prefix,
        trace_lines=trace_lines,
        capture_streams=False,
    )
    spy = SilentSpy(settings, out=sys.stdout)
    spy.init()
    try:
        for event in events:
            spy.on_event(event)
    finally:
        spy.close()

    if spy.degraded:
        raise typer.Exit(code=2)
    session = spy.coordinator.session if spy.coordinator else None
    if session is not None and session.failed:
        raise typer.Exit(code=1)
