"""``silentspy reports DIR`` — condense one directory of test reports."""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console

from silentspy.core.artifact_extractor import ArtifactExtractor
from silentspy.core.emitter import ProtocolEmitter

console = Console(stderr=True)


def reports_cmd(
    reports_dir: Path = typer.Argument(
        ...,
        exists=True,
        file_okay=False,
        help="Directory holding TEST-*.xml report files.",
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
    """Print the TESTS block for a report directory.

    Exits with 1 when any test failed or errored.
    """
    extractor = ArtifactExtractor(trace_lines=trace_lines)
    summary = extractor.parse_reports_dir(reports_dir)

    for warning in summary.warnings:
        console.print(f"[yellow]warning:[/yellow] {warning}")

    ProtocolEmitter(sys.stdout, prefix=prefix).emit_test_results(summary)
    if summary.has_failures:
        raise typer.Exit(code=1)
