"""``cachepush push FILE...`` — upload artifacts to the cache repository.

Files under 1 MiB go through one conditional contents write; files up to
100 MiB through a blob/tree/commit transaction; larger files are refused.
Directories are expanded recursively.  Exits 1 if any artifact failed.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console

from cachepush.cli.report import ReportRenderer
from cachepush.config import ConfigError, PushSettings
from cachepush.core.path_resolver import PathResolver
from cachepush.core.publisher import Publisher
from cachepush.models.objects import Destination
from cachepush.store.base import RemoteStore
from cachepush.store.github import GitHubStore

console = Console()


@contextmanager
def open_store(settings: PushSettings, destination: Destination) -> Iterator[RemoteStore]:
    """Open the GitHub store for *destination*, closing it afterwards."""
    with GitHubStore(
        destination,
        settings.require_token(),
        api_url=settings.api_url,
        api_version=settings.api_version,
        timeout=settings.request_timeout,
        policy=settings.transport_policy(),
    ) as store:
        yield store


def push_cmd(
    files: list[Path] = typer.Argument(
        ...,
        help="Files or directories to upload (NAR, narinfo, logs).",
    ),
    owner: str = typer.Option(
        None, "--owner", help="Repository owner (default: from config or env)."
    ),
    repo: str = typer.Option(
        None, "--repo", help="Repository name (default: from config or env)."
    ),
    branch: str = typer.Option(
        None, "--branch", help="Target branch (default: main)."
    ),
    prefix: str = typer.Option(
        None, "--prefix", help="Path prefix in repository (default: based on file type)."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="Show what would be uploaded without doing it."
    ),
    workers: int = typer.Option(
        None, "--workers", "-w", min=1, help="Remote paths written concurrently."
    ),
) -> None:
    """Upload NAR files and metadata to the cache repository."""
    settings = PushSettings()
    try:
        destination = settings.resolve_destination(owner, repo, branch)
        if not dry_run:
            settings.require_token()
    except ConfigError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        raise typer.Exit(code=1)

    console.print(
        f"Upload target: [bold]{destination.slug}[/bold] "
        f"(branch: {destination.branch})"
    )
    console.print()

    resolver = PathResolver(prefix)
    if dry_run:
        publisher = Publisher(
            None, branch=destination.branch, resolver=resolver, dry_run=True
        )
        report = publisher.publish(files)
    else:
        with open_store(settings, destination) as store:
            publisher = Publisher(
                store,
                branch=destination.branch,
                resolver=resolver,
                policy=settings.retry_policy(),
                workers=workers or settings.workers,
            )
            report = publisher.publish(files)

    ReportRenderer(console=console).print_report(report)
    if not report.ok:
        raise typer.Exit(code=1)
