"""Rich terminal rendering of publish plans and batch reports.

Color scheme
------------
- green   : published / unchanged / dry-run
- yellow  : skipped
- red     : every failure
"""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cachepush.models.artifacts import Artifact, Tier, format_iec
from cachepush.models.outcomes import BatchReport, PublishResult, PublishStatus

_STATUS_LABELS: dict[PublishStatus, str] = {
    PublishStatus.PUBLISHED: "[green]OK[/green]",
    PublishStatus.UNCHANGED: "[green]OK (unchanged)[/green]",
    PublishStatus.DRY_RUN: "[cyan]dry-run[/cyan]",
    PublishStatus.REJECTED: "[bold red]ERROR: >100MiB[/bold red]",
    PublishStatus.CONFLICT: "[red]CONFLICT[/red]",
    PublishStatus.CONTENTION_EXHAUSTED: "[bold red]CONTENDED[/bold red]",
    PublishStatus.NOT_FOUND: "[red]NOT FOUND[/red]",
    PublishStatus.TRANSPORT_ERROR: "[red]FAILED[/red]",
    PublishStatus.SKIPPED: "[yellow]SKIPPED[/yellow]",
}

_TIER_STYLES: dict[Tier, str] = {
    Tier.SMALL: "dim",
    Tier.LARGE: "bold",
    Tier.REJECTED: "bold red",
}


class ReportRenderer:
    """Renders plans and ``BatchReport`` objects for the terminal.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_results(self, report: BatchReport) -> Table:
        table = Table(title="Upload Results", expand=False)
        table.add_column("Remote path", style="cyan", no_wrap=True)
        table.add_column("Size", justify="right")
        table.add_column("Tier")
        table.add_column("Result")

        for result in report.results:
            table.add_row(
                escape(result.remote_path or str(result.local_path)),
                format_iec(result.size_bytes) if result.tier else "-",
                self._tier_cell(result.tier),
                self._result_cell(result),
            )
        return table

    def render_summary(self, report: BatchReport) -> Panel:
        lines = [
            f"[bold]Success:[/bold] {report.succeeded}",
            f"[bold]Failed:[/bold]  {report.failed}",
        ]
        if report.dry_run:
            lines.append("[dim]Dry run: nothing was uploaded.[/dim]")
        return Panel(
            "\n".join(lines),
            title="[bold]Upload Summary[/bold]",
            border_style="green" if report.ok else "red",
            expand=False,
        )

    def print_report(self, report: BatchReport) -> None:
        self.console.print(self.render_results(report))
        self.console.print(self.render_summary(report))

    def render_plan(self, artifacts: list[Artifact]) -> Table:
        table = Table(title="Resolved Artifacts", expand=False)
        table.add_column("Local path", no_wrap=True)
        table.add_column("Remote path", style="cyan", no_wrap=True)
        table.add_column("Kind")
        table.add_column("Size", justify="right")
        table.add_column("Tier")
        for artifact in artifacts:
            table.add_row(
                escape(str(artifact.local_path)),
                escape(artifact.remote_path),
                artifact.kind.value,
                format_iec(artifact.size_bytes),
                self._tier_cell(artifact.tier),
            )
        return table

    @staticmethod
    def _tier_cell(tier: Tier | None) -> str:
        if tier is None:
            return "-"
        return f"[{_TIER_STYLES[tier]}]{tier.value}[/{_TIER_STYLES[tier]}]"

    @staticmethod
    def _result_cell(result: PublishResult) -> str:
        label = _STATUS_LABELS[result.status]
        if result.ok or not result.detail:
            return label
        return f"{label} [dim]{escape(result.detail)}[/dim]"
