"""Main Typer application — imports and registers all CLI commands.

Entry point: ``silentspy`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import typer

from silentspy.cli.commands.replay import replay_cmd
from silentspy.cli.commands.reports import reports_cmd

app = typer.Typer(
    name="silentspy",
    help="silentspy: dense, deterministic build output.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="replay", help="Replay a recorded build event stream.")(replay_cmd)
app.command(name="reports", help="Condense a directory of test reports.")(reports_cmd)


@app.command(name="config", help="Show effective MSE_* settings.")
def config_cmd() -> None:
    """Show the settings the spy would run with in this environment."""
    from rich.console import Console
    from rich.table import Table

    from silentspy.config import load_settings

    console = Console()
    settings = load_settings()

    table = Table(title="silentspy settings")
    table.add_column("Setting", style="cyan")
    table.add_column("Env var", style="dim")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        table.add_row(name, f"MSE_{name.upper()}", repr(value))
    table.add_row("buffer_tail_bytes", "[dim]derived[/dim]", repr(settings.buffer_tail_bytes))

    console.print(table)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
