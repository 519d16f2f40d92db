"""cachepush CLI — Typer-based command-line interface.

Provides the ``cachepush`` command with subcommands for publishing
artifacts to the cache repository and previewing where they would land.

All output uses Rich for formatted terminal display.
"""
