"""``relman clean`` — delete stored versions to reclaim disk space.

The active version is never offered. Nothing is deleted until the
operator types the confirmation token.
"""

from __future__ import annotations

import typer

from relman.cli.common import console, fail, make_manager
from relman.core.errors import ReleaseError
from relman.monitor.renderer import ReleaseRenderer


def clean_cmd() -> None:
    """Select stored versions and delete them after typed confirmation."""
    manager = make_manager()
    renderer = ReleaseRenderer(console=console)

    try:
        report = manager.clean(
            on_plan=lambda plan: console.print(renderer.render_cleanup_plan(plan))
        )
    except ReleaseError as exc:
        raise fail(exc)

    if report.plan.empty:
        console.print("[dim]No versions selected. Nothing deleted.[/dim]")
        return

    console.print(renderer.render_cleanup(report))
    if report.failures:
        raise typer.Exit(code=1)
