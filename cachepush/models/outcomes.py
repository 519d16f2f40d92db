"""Publish outcome models — per-write receipts and batch reports."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from cachepush.models.artifacts import Tier


class PublishStatus(str, Enum):
    """Outcome of publishing one artifact."""

    PUBLISHED = "published"
    UNCHANGED = "unchanged"
    DRY_RUN = "dry_run"
    REJECTED = "rejected"
    CONFLICT = "conflict"
    CONTENTION_EXHAUSTED = "contention_exhausted"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"
    SKIPPED = "skipped"

    @property
    def is_success(self) -> bool:
        return self in _SUCCESS_STATUSES


_SUCCESS_STATUSES = frozenset(
    {PublishStatus.PUBLISHED, PublishStatus.UNCHANGED, PublishStatus.DRY_RUN}
)


class WriteReceipt(BaseModel):
    """What a writer did for one remote path.

    ``commit_sha`` is None when the path already held the same content
    and nothing was written.
    """

    model_config = ConfigDict(frozen=True)

    remote_path: str
    blob_sha: str
    commit_sha: str | None = None
    attempts: int = 1

    @property
    def changed(self) -> bool:
        return self.commit_sha is not None


class PublishResult(BaseModel):
    """Per-artifact outcome, reported individually to the user."""

    model_config = ConfigDict(frozen=True)

    local_path: Path
    remote_path: str = ""
    size_bytes: int = 0
    tier: Tier | None = None
    status: PublishStatus
    detail: str = ""
    commit_sha: str | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.status.is_success


class BatchReport(BaseModel):
    """Aggregate of a publish batch."""

    model_config = ConfigDict(frozen=True)

    results: list[PublishResult] = Field(default_factory=list)
    dry_run: bool = False

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def by_status(self, status: PublishStatus) -> list[PublishResult]:
        return [r for r in self.results if r.status == status]
