"""Operator decision points — confirm, select, multi-select, free-form ask.

Business logic never reads the terminal directly. It asks a ``Prompter``,
which is either the Rich console adapter (interactive operator) or the
``AutoPrompter`` (non-interactive runs and automated tests).

Selections are returned as 0-based indices into the offered options.
``select`` returns ``None`` for an explicit cancel; any other value may be
out of range and is validated by the caller, which re-prompts.
"""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from rich.console import Console
from rich.prompt import Confirm, Prompt

logger = logging.getLogger(__name__)

CANCEL_WORDS = frozenset({"c", "cancel", "q", "quit"})


@runtime_checkable
class Prompter(Protocol):
    """Port for every interactive decision the manager needs."""

    def confirm(self, question: str, *, default: bool = False) -> bool:
        """Yes/no decision."""
        ...

    def select(self, question: str, options: list[str]) -> int | None:
        """Pick one option; ``None`` means cancel."""
        ...

    def select_many(self, question: str, options: list[str]) -> list[int]:
        """Pick any number of options; empty means nothing selected."""
        ...

    def ask(self, question: str, *, default: str = "") -> str:
        """Free-form answer; an empty reply yields *default*."""
        ...


def parse_index_list(text: str) -> tuple[list[int], list[str]]:
    """Parse ``"1 3 5"`` (1-based, space or comma separated) into 0-based indices.

    Returns ``(indices, rejected_tokens)``; order is preserved and
    duplicates are kept for the caller to report.
    """
    indices: list[int] = []
    rejected: list[str] = []
    for token in text.replace(",", " ").split():
        if token.isdigit() and int(token) > 0:
            indices.append(int(token) - 1)
        else:
            rejected.append(token)
    return indices, rejected


class ConsolePrompter:
    """Interactive adapter backed by Rich prompts.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def confirm(self, question: str, *, default: bool = False) -> bool:
        return Confirm.ask(question, default=default, console=self.console)

    def select(self, question: str, options: list[str]) -> int | None:
        self.console.print(f"[yellow]{question}[/yellow]")
        for number, label in enumerate(options, start=1):
            self.console.print(f"  {number}) {label}")
        cancel_number = len(options) + 1
        self.console.print(f"  {cancel_number}) [dim]Cancel[/dim]")

        reply = Prompt.ask("Selection", console=self.console).strip()
        if reply.lower() in CANCEL_WORDS or reply == str(cancel_number):
            return None
        if reply.isdigit():
            return int(reply) - 1
        return -1

    def select_many(self, question: str, options: list[str]) -> list[int]:
        self.console.print(f"[yellow]{question}[/yellow]")
        for number, label in enumerate(options, start=1):
            self.console.print(f"  {number}) [cyan]{label}[/cyan]")

        reply = Prompt.ask(
            "Numbers (separated by spaces, e.g. 1 3 5)",
            default="",
            show_default=False,
            console=self.console,
        )
        indices, rejected = parse_index_list(reply)
        for token in rejected:
            self.console.print(f"  - [red]'{token}' is not a valid number. Skipping.[/red]")
        return indices

    def ask(self, question: str, *, default: str = "") -> str:
        return Prompt.ask(question, default=default, console=self.console)


class AutoPrompter:
    """Non-interactive adapter: answers every confirmation with *approve*.

    Selections cannot be guessed safely, so ``select`` cancels and
    ``select_many`` selects nothing.  ``ask`` returns the default.
    """

    def __init__(self, approve: bool = True) -> None:
        self.approve = approve

    def confirm(self, question: str, *, default: bool = False) -> bool:
        logger.info("Auto-%s: %s", "approved" if self.approve else "declined", question)
        return self.approve

    def select(self, question: str, options: list[str]) -> int | None:
        logger.info("Non-interactive selection cancelled: %s", question)
        return None

    def select_many(self, question: str, options: list[str]) -> list[int]:
        logger.info("Non-interactive multi-selection is empty: %s", question)
        return []

    def ask(self, question: str, *, default: str = "") -> str:
        return default
