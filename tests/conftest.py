"""Shared test fixtures for cachepush."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from cachepush.core.large_writer import LargeObjectWriter
from cachepush.core.retry import OptimisticLoop, RetryPolicy
from cachepush.core.small_writer import SmallObjectWriter
from cachepush.store.memory import InMemoryStore

MiB = 1024 * 1024

_STORE_OPS = frozenset({
    "read_path",
    "write_path",
    "create_blob",
    "read_ref",
    "read_commit",
    "read_tree",
    "create_tree",
    "create_commit",
    "update_ref",
})

_ENV_VARS = (
    "CACHE_OWNER",
    "CACHE_REPO",
    "CACHE_BRANCH",
    "CACHE_REPO_TOKEN",
    "GITHUB_TOKEN",
    "CACHE_CONFIG_RECORD_PATH",
    "CACHE_LOG_LEVEL",
    "CACHE_WORKERS",
)


class RecordingStore:
    """Wraps a store and records the name of every capability call."""

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self.calls: list[str] = []

    def __getattr__(self, name: str) -> Any:
        attr = getattr(self.inner, name)
        if name not in _STORE_OPS:
            return attr

        def _recorded(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            return attr(*args, **kwargs)

        return _recorded


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run every test in a temp cwd with no CACHE_* / token variables."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def store() -> InMemoryStore:
    """Provide a fresh in-process store with an empty ``main`` branch."""
    return InMemoryStore()


@pytest.fixture
def recording_store(store: InMemoryStore) -> RecordingStore:
    """Provide the in-process store wrapped in a call recorder."""
    return RecordingStore(store)


@pytest.fixture
def sleeps() -> list[float]:
    """Collects backoff delays instead of sleeping."""
    return []


@pytest.fixture
def policy() -> RetryPolicy:
    """A small retry budget without real delays."""
    return RetryPolicy(max_attempts=3, base_delay=0.01, max_delay=0.1)


@pytest.fixture
def loop(policy: RetryPolicy, sleeps: list[float]) -> OptimisticLoop:
    """Provide an OptimisticLoop that records instead of sleeping."""
    return OptimisticLoop(policy, sleep=sleeps.append)


@pytest.fixture
def small_writer(store: InMemoryStore, loop: OptimisticLoop) -> SmallObjectWriter:
    return SmallObjectWriter(store, "main", loop)


@pytest.fixture
def large_writer(store: InMemoryStore, loop: OptimisticLoop) -> LargeObjectWriter:
    return LargeObjectWriter(store, "main", loop)


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture: write a file under the temp dir.

    Pass either ``content`` or ``size`` (filled with a repeating byte).
    """

    def _factory(
        relpath: str,
        content: bytes | None = None,
        *,
        size: int | None = None,
        fill: bytes = b"x",
    ) -> Path:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        if content is None:
            content = fill * (size or 0)
        path.write_bytes(content)
        return path

    return _factory


@pytest.fixture
def make_sparse_file(tmp_path: Path) -> Callable[[str, int], Path]:
    """Factory fixture: a sparse file of the given size (no real disk use)."""

    def _factory(relpath: str, size: int) -> Path:
        path = tmp_path / relpath
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("wb") as fh:
            fh.seek(size - 1)
            fh.write(b"\0")
        return path

    return _factory
