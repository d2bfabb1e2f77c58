"""Rich terminal renderer for relman reports.

Turns the frozen report models into Rich renderables. The renderer never
inspects the filesystem; everything it shows comes from a report.

Color scheme
------------
- green     : SUCCESS
- yellow    : DEGRADED
- bold red  : FAILURE
- cyan      : active version
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from relman.core.filesystem import format_size
from relman.models.outcomes import (
    BuildResult,
    CleanupPlan,
    CleanupReport,
    RestartReport,
    RollbackReport,
    StepResult,
    StepStatus,
    StoreStatus,
    UpgradeReport,
    VerificationReport,
)
from relman.models.versions import PointerState

# ---------------------------------------------------------------------------
# Status -> Rich markup
# ---------------------------------------------------------------------------

_STATUS_ICONS: dict[StepStatus, str] = {
    StepStatus.SUCCESS: "[green]OK[/green]",
    StepStatus.DEGRADED: "[yellow]DEGRADED[/yellow]",
    StepStatus.FAILURE: "[bold red]FAILED[/bold red]",
}

_POINTER_STATES: dict[PointerState, str] = {
    PointerState.LINKED: "[green]linked[/green]",
    PointerState.ABSENT: "[dim]absent[/dim]",
    PointerState.OBSTRUCTED: "[bold red]not a symlink[/bold red]",
}


class ReleaseRenderer:
    """Renders relman reports as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def steps_table(self, steps: list[StepResult]) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("Step", min_width=12)
        table.add_column("Status", justify="center", min_width=10)
        table.add_column("Details")
        for step in steps:
            table.add_row(step.step, _STATUS_ICONS[step.status], step.detail or "[dim]-[/dim]")
        return table

    def _verification_lines(self, verification: VerificationReport) -> list[str]:
        lines = [
            f"[bold]Direct check:[/bold] {_STATUS_ICONS[verification.direct.status]}",
            f"[bold]Login session check:[/bold] {_STATUS_ICONS[verification.environment.status]}",
        ]
        if verification.reported_version:
            lines.append(f"[bold]Reports:[/bold] {verification.reported_version}")
        return lines

    def _restart_line(self, restart: RestartReport) -> str:
        if not restart.requested:
            return "[bold]Restart:[/bold] [dim]not requested[/dim]"
        status = _STATUS_ICONS[restart.result.status] if restart.result else "[dim]-[/dim]"
        return (
            f"[bold]Restart:[/bold] {status} "
            f"(max delinquent stake {restart.max_delinquent_stake}, "
            f"min idle time {restart.min_idle_time}s)"
        )

    def warnings(self, messages: list[str]) -> None:
        for message in messages:
            self.console.print(f"[yellow]WARNING:[/yellow] {message}")

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def render_build(self, build: BuildResult) -> Panel:
        summary = "  |  ".join([
            f"[bold]Variant:[/bold] {build.variant.name}",
            f"[bold]Commit:[/bold] {build.commit[:12] or '-'}",
            f"[bold]Procedure:[/bold] {build.procedure.value}",
            f"[bold]Outcome:[/bold] {_STATUS_ICONS[build.outcome]}",
        ])
        return Panel(
            Group(self.steps_table(build.steps), Text(""), Text.from_markup(summary)),
            title=f"[bold]Build {build.revision}[/bold]",
            subtitle=f"Artifacts: {build.output_dir}",
            border_style="yellow" if build.outcome == StepStatus.DEGRADED else "blue",
            padding=(1, 2),
        )

    def render_upgrade(self, report: UpgradeReport) -> Panel:
        lines = [
            f"[bold]Active version:[/bold] [cyan]{report.entry.key}[/cyan]",
            f"[bold]Pointer:[/bold] {report.swap.pointer} -> {report.entry.artifact_dir}",
        ]
        if report.swap.backup is not None:
            lines.append(f"[bold]Previous pointer saved as:[/bold] {report.swap.backup.name}")
        lines.extend(self._verification_lines(report.verification))
        lines.append(self._restart_line(report.restart))
        return Panel(
            Text.from_markup("\n".join(lines)),
            title="[bold]Upgrade complete[/bold]",
            border_style="green" if report.verification.direct.ok else "red",
            padding=(1, 2),
        )

    def render_rollback(self, report: RollbackReport) -> Panel:
        lines = [
            f"[bold]Rolled back from:[/bold] {report.previous_key or '-'}",
            f"[bold]Active version:[/bold] [cyan]{report.swap.entry.key}[/cyan]",
        ]
        if report.swap.backup is not None:
            lines.append(f"[bold]Previous pointer saved as:[/bold] {report.swap.backup.name}")
        lines.extend(self._verification_lines(report.verification))
        lines.append(self._restart_line(report.restart))
        return Panel(
            Text.from_markup("\n".join(lines)),
            title="[bold]Rollback complete[/bold]",
            border_style="green" if report.verification.direct.ok else "red",
            padding=(1, 2),
        )

    def render_cleanup_plan(self, plan: CleanupPlan) -> Table:
        table = Table(show_header=True, header_style="bold cyan", title="Selected for deletion")
        table.add_column("Version")
        table.add_column("Size", justify="right")
        table.add_column("Running total", justify="right")
        running = 0
        for item in plan.items:
            running += item.size_bytes
            table.add_row(item.entry.key, format_size(item.size_bytes), format_size(running))
        return table

    def render_cleanup(self, report: CleanupReport) -> Table:
        table = Table(show_header=True, header_style="bold cyan", title="Cleanup results")
        table.add_column("Version")
        table.add_column("Status", justify="center")
        table.add_column("Details")
        for deletion in report.deletions:
            table.add_row(deletion.key, _STATUS_ICONS[deletion.result.status], deletion.result.detail)
        table.caption = f"Freed {format_size(report.freed_bytes)}"
        return table

    def render_status(self, status: StoreStatus) -> Panel:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Version", min_width=20)
        table.add_column("Size", justify="right")
        table.add_column("Stored", justify="right")
        for number, version in enumerate(status.versions, start=1):
            name = version.entry.key
            if version.active:
                name = f"[bold cyan]{name} (active)[/bold cyan]"
            table.add_row(
                str(number),
                name,
                format_size(version.size_bytes),
                version.entry.created_at.strftime("%Y-%m-%d %H:%M"),
            )

        parts: list[object] = [table]
        if status.backups:
            parts.append(Text(""))
            parts.append(Text.from_markup(f"[bold]Pointer backups ({len(status.backups)}):[/bold]"))
            for backup in status.backups:
                parts.append(Text(f"  {backup.name} -> {backup.target}"))

        summary = "  |  ".join([
            f"[bold]Pointer:[/bold] {_POINTER_STATES[status.pointer_state]}",
            f"[bold]Active:[/bold] {status.active_key or '-'}",
            f"[bold]Versions:[/bold] {len(status.versions)}",
        ])
        parts.extend([Text(""), Text.from_markup(summary)])
        return Panel(
            Group(*parts),
            title=f"[bold]Version Store[/bold] {status.base}",
            border_style="blue",
            padding=(1, 2),
        )
