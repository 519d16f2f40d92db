"""Unit tests for the CLI — command registration, push and resolve.

The GitHub store is replaced by an in-process store via ``open_store`` so
the commands run end to end without a network.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
from rich.console import Console
from typer.testing import CliRunner

from cachepush.cli.app import app
from cachepush.cli.commands import push as push_module
from cachepush.cli.commands import resolve as resolve_module
from cachepush.store.memory import InMemoryStore

runner = CliRunner()

MiB = 1024 * 1024


@pytest.fixture(autouse=True)
def wide_console(monkeypatch: pytest.MonkeyPatch) -> None:
    """Render tables without truncating long temp paths."""
    monkeypatch.setattr(push_module, "console", Console(width=200))
    monkeypatch.setattr(resolve_module, "console", Console(width=200))


@pytest.fixture
def remote(monkeypatch: pytest.MonkeyPatch, store: InMemoryStore) -> InMemoryStore:
    """Route ``push`` to the in-process store and provide credentials."""
    opened: list[str] = []

    @contextmanager
    def _open_store(settings, destination) -> Iterator[InMemoryStore]:
        settings.require_token()
        opened.append(destination.slug)
        yield store

    monkeypatch.setattr(push_module, "open_store", _open_store)
    monkeypatch.setenv("CACHE_REPO_TOKEN", "ghp_test")
    store.opened = opened  # type: ignore[attr-defined]
    return store


# ---------------------------------------------------------------------------
# Test: CLI help and registration
# ---------------------------------------------------------------------------


class TestCliApp:
    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert result.exit_code in (0, 2)
        assert "usage" in result.output.lower()

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "push" in result.output
        assert "resolve" in result.output

    def test_push_help(self):
        result = runner.invoke(app, ["push", "--help"])
        assert result.exit_code == 0
        assert "--dry-run" in result.output


# ---------------------------------------------------------------------------
# Test: push
# ---------------------------------------------------------------------------


class TestPush:
    def test_requires_destination(self, make_file: Callable[..., Path]):
        path = make_file("abc.narinfo", b"x")
        result = runner.invoke(app, ["push", "--dry-run", str(path)])
        assert result.exit_code == 1
        assert "owner and name required" in result.output

    def test_requires_token(self, make_file: Callable[..., Path]):
        path = make_file("abc.narinfo", b"x")
        result = runner.invoke(app, ["push", "--owner", "org", "--repo", "cache", str(path)])
        assert result.exit_code == 1
        assert "GITHUB_TOKEN" in result.output

    def test_dry_run_needs_no_token(self, make_file: Callable[..., Path]):
        path = make_file("abc.narinfo", b"x" * 50)
        result = runner.invoke(
            app, ["push", "--owner", "org", "--repo", "cache", "--dry-run", str(path)]
        )
        assert result.exit_code == 0, result.output
        assert "org/cache" in result.output
        assert "nothing was uploaded" in result.output

    def test_dry_run_does_not_open_store(self, remote: InMemoryStore, make_file: Callable[..., Path]):
        path = make_file("abc.narinfo", b"x")
        result = runner.invoke(
            app, ["push", "--owner", "org", "--repo", "cache", "--dry-run", str(path)]
        )
        assert result.exit_code == 0
        assert remote.opened == []
        assert remote.read_path("abc.narinfo", "main") is None

    def test_push_publishes(self, remote: InMemoryStore, make_file: Callable[..., Path], tmp_path: Path):
        make_file("export/abc.narinfo", b"StorePath: /nix/store/abc\n")
        make_file("export/nar/abc.nar", size=2 * MiB)
        result = runner.invoke(
            app, ["push", "--owner", "org", "--repo", "cache", str(tmp_path / "export")]
        )
        assert result.exit_code == 0, result.output
        assert remote.opened == ["org/cache"]
        assert remote.read_bytes("abc.narinfo") == b"StorePath: /nix/store/abc\n"
        assert len(remote.read_bytes("nar/abc.nar")) == 2 * MiB

    def test_prefix_option(self, remote: InMemoryStore, make_file: Callable[..., Path]):
        path = make_file("abc.nar", b"nar")
        result = runner.invoke(
            app,
            ["push", "--owner", "org", "--repo", "cache", "--prefix", "custom/", str(path)],
        )
        assert result.exit_code == 0, result.output
        assert remote.read_bytes("custom/abc.nar") == b"nar"

    def test_missing_file_fails_batch(
        self, remote: InMemoryStore, make_file: Callable[..., Path], tmp_path: Path
    ):
        good = make_file("index.txt", b"idx")
        result = runner.invoke(
            app,
            ["push", "--owner", "org", "--repo", "cache", str(good), str(tmp_path / "gone.nar")],
        )
        assert result.exit_code == 1
        assert remote.read_bytes("index.txt") == b"idx"

    def test_oversize_fails_batch(self, remote: InMemoryStore, make_sparse_file):
        path = make_sparse_file("nar/huge.nar", 100 * MiB + 1)
        result = runner.invoke(app, ["push", "--owner", "org", "--repo", "cache", str(path)])
        assert result.exit_code == 1
        assert "ERROR: >100MiB" in result.output
        assert remote.read_path("nar/huge.nar", "main") is None

    def test_destination_from_config_record(
        self, remote: InMemoryStore, make_file: Callable[..., Path], tmp_path: Path
    ):
        record = tmp_path / "PULL" / "cache" / "config.json"
        record.parent.mkdir(parents=True)
        record.write_text(json.dumps({"cache_repo": {"owner": "rec", "repo": "cache"}}))
        path = make_file("index.txt", b"idx")
        result = runner.invoke(app, ["push", str(path)])
        assert result.exit_code == 0, result.output
        assert remote.opened == ["rec/cache"]


# ---------------------------------------------------------------------------
# Test: resolve
# ---------------------------------------------------------------------------


class TestResolve:
    def test_resolve_prints_plan(self, make_file: Callable[..., Path]):
        path = make_file("export/abc.narinfo", b"x")
        result = runner.invoke(app, ["resolve", str(path)])
        assert result.exit_code == 0, result.output
        assert "abc.narinfo" in result.output
        assert "small" in result.output

    def test_resolve_missing_file(self, tmp_path: Path):
        result = runner.invoke(app, ["resolve", str(tmp_path / "gone.nar")])
        assert result.exit_code == 1
        assert "Not found" in result.output
