"""``relman upgrade REVISION`` — build a revision and make it the active release.

Classifies the revision, prepares the working copy, builds, stores the
artifacts as a new version, and (after confirmation) swaps the Active
Release Pointer. ``relman REVISION`` is shorthand for this command.
"""

from __future__ import annotations

import typer

from relman.cli.common import console, fail, make_manager
from relman.core.errors import ReleaseError
from relman.monitor.renderer import ReleaseRenderer


def upgrade_cmd(
    revision: str = typer.Argument(
        ...,
        help="Tag or branch to build, e.g. v2.1.5-jito.",
    ),
    jobs: int = typer.Option(
        None,
        "--jobs",
        "-j",
        min=1,
        help="Build parallelism. Defaults to RELMAN_BUILD_JOBS.",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Answer yes to every confirmation.",
    ),
    no_restart: bool = typer.Option(
        False,
        "--no-restart",
        help="Do not offer to restart the service afterwards.",
    ),
) -> None:
    """Build REVISION, store it, and point the active release at it."""
    manager = make_manager(assume_yes=yes)
    renderer = ReleaseRenderer(console=console)

    try:
        report = manager.upgrade(revision, jobs, restart=not no_restart)
    except ReleaseError as exc:
        raise fail(exc)

    console.print()
    console.print(renderer.render_build(report.build))
    console.print(renderer.render_upgrade(report))
    renderer.warnings(report.warnings)

    if not report.verification.direct.ok:
        console.print(
            f"[bold red]{report.entry.key} is active but failed its version check.[/bold red]"
        )
        raise typer.Exit(code=1)
