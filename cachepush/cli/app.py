"""Main Typer application — imports and registers all CLI commands.

Entry point: ``cachepush`` (configured via pyproject.toml scripts).
"""

from __future__ import annotations

import logging

import typer
from rich.console import Console
from rich.logging import RichHandler

from cachepush.cli.commands.push import push_cmd
from cachepush.cli.commands.resolve import resolve_cmd
from cachepush.config import PushSettings

app = typer.Typer(
    name="cachepush",
    help="Publish build artifacts to a git-backed binary cache.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="push", help="Upload files to the cache repository.")(push_cmd)
app.command(name="resolve", help="Show remote paths and tiers without uploading.")(
    resolve_cmd
)


def configure_logging(level: str) -> None:
    """Send log records to stderr through Rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


@app.callback()
def main_callback(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every request and decision."
    ),
) -> None:
    """Configure logging before any subcommand runs."""
    configure_logging("DEBUG" if verbose else PushSettings().log_level)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
