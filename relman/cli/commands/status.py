"""``relman status`` — stored versions, sizes, the active one, and pointer backups."""

from __future__ import annotations

from relman.cli.common import console, make_manager
from relman.monitor.renderer import ReleaseRenderer


def status_cmd() -> None:
    """Show the Version Store without changing anything."""
    manager = make_manager()
    renderer = ReleaseRenderer(console=console)
    console.print(renderer.render_status(manager.status()))
