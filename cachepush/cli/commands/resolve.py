"""``cachepush resolve FILE...`` — show where artifacts would be published.

Resolution and tier classification only; the store is never contacted.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from cachepush.cli.report import ReportRenderer
from cachepush.core.path_resolver import PathResolver
from cachepush.core.publisher import Publisher

console = Console()


def resolve_cmd(
    files: list[Path] = typer.Argument(..., help="Files or directories to resolve."),
    prefix: str = typer.Option(
        None, "--prefix", help="Path prefix override (default: based on file type)."
    ),
) -> None:
    """Print remote path, kind, size and tier for each artifact."""
    publisher = Publisher(None, resolver=PathResolver(prefix), dry_run=True)
    artifacts, missing = publisher.plan(files)

    if artifacts:
        console.print(ReportRenderer(console=console).render_plan(artifacts))
    for path in missing:
        console.print(f"[red]Not found:[/red] {escape(str(path))}")
    if missing:
        raise typer.Exit(code=1)
