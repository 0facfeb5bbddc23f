"""silentspy CLI — Typer-based command-line interface.

Provides the ``silentspy`` command with subcommands for replaying
recorded build event streams, condensing report directories, and showing
the effective settings.
"""
