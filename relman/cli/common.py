"""Shared plumbing for the CLI commands: console, manager factory, error exit."""

from __future__ import annotations

import logging

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from relman.config import load_config
from relman.contrib.prompts import AutoPrompter, ConsolePrompter, Prompter
from relman.core.errors import OperationCancelled, ReleaseError
from relman.core.manager import ReleaseManager

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: str) -> None:
    """Route every ``relman.*`` logger through Rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def make_manager(*, assume_yes: bool = False) -> ReleaseManager:
    """Load the configuration once and build the manager for one command."""
    try:
        config = load_config()
    except ValidationError as exc:
        console.print(f"[bold red]Invalid configuration:[/bold red]\n{exc}")
        raise typer.Exit(code=2)

    prompter: Prompter = AutoPrompter(approve=True) if assume_yes else ConsolePrompter(console)
    return ReleaseManager(config, prompter)


def fail(exc: ReleaseError) -> typer.Exit:
    """Print *exc* with the step that failed and return the exit to raise."""
    if isinstance(exc, OperationCancelled):
        console.print(f"[bold yellow]Cancelled:[/bold yellow] {exc}")
    else:
        console.print(f"[bold red]Failed at {exc.step}:[/bold red] {exc}")
    return typer.Exit(code=1)
