"""relman CLI — Typer-based command-line interface.

Provides the ``relman`` command with subcommands for upgrading to a
revision, rolling back, cleaning up stored versions, listing upstream
references and showing the Version Store.

All output uses Rich for formatted terminal display.
"""
