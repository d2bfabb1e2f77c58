"""``relman list-tags VARIANT`` / ``relman list-branches VARIANT``.

Read-only: clones the variant's working copy if needed, fetches, and
prints the newest references. Nothing in the Version Store changes.
"""

from __future__ import annotations

import typer
from rich.table import Table

from relman.cli.common import console, fail, make_manager
from relman.core.errors import ReleaseError


def _print_refs(title: str, refs: list[str]) -> None:
    if not refs:
        console.print(f"[dim]No {title.lower()} found.[/dim]")
        return
    table = Table(title=title, show_header=False)
    table.add_column("Reference", style="cyan")
    for ref in refs:
        table.add_row(ref)
    console.print(table)


def list_tags_cmd(
    variant: str = typer.Argument(..., help="Source variant name, e.g. jito."),
) -> None:
    """Show the newest tags of a source variant."""
    manager = make_manager()
    try:
        refs = manager.list_tags(variant)
    except ReleaseError as exc:
        raise fail(exc)
    _print_refs(f"Tags ({variant})", refs)


def list_branches_cmd(
    variant: str = typer.Argument(..., help="Source variant name, e.g. agave."),
) -> None:
    """Show the most recently updated branches of a source variant."""
    manager = make_manager()
    try:
        refs = manager.list_branches(variant)
    except ReleaseError as exc:
        raise fail(exc)
    _print_refs(f"Branches ({variant})", refs)
