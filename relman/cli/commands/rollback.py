"""``relman rollback`` — re-activate a previously stored version."""

from __future__ import annotations

import typer

from relman.cli.common import console, fail, make_manager
from relman.core.errors import ReleaseError
from relman.monitor.renderer import ReleaseRenderer


def rollback_cmd(
    no_restart: bool = typer.Option(
        False,
        "--no-restart",
        help="Do not offer to restart the service afterwards.",
    ),
) -> None:
    """Choose a stored version and swap the active release pointer to it."""
    manager = make_manager()
    renderer = ReleaseRenderer(console=console)

    console.print(renderer.render_status(manager.status()))
    try:
        report = manager.rollback(restart=not no_restart)
    except ReleaseError as exc:
        raise fail(exc)

    console.print(renderer.render_rollback(report))
    renderer.warnings(report.verification.warnings)
    if not report.verification.direct.ok:
        raise typer.Exit(code=1)
