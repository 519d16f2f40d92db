"""Artifact models — local build outputs and their publish classification."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class Tier(str, Enum):
    """Size-based write strategy for an artifact."""

    SMALL = "small"
    LARGE = "large"
    REJECTED = "rejected"


class ArtifactKind(str, Enum):
    """What an artifact is, as inferred from its name and location."""

    ARCHIVE = "archive"
    METADATA = "metadata"
    LOG = "log"
    MANIFEST = "manifest"
    INDEX = "index"
    OTHER = "other"


class ResolvedPath(BaseModel):
    """Where a local file lands in the cache repository."""

    model_config = ConfigDict(frozen=True)

    remote_path: str
    kind: ArtifactKind
    content_key: str  # filename stem shared by an archive and its records


class Artifact(BaseModel):
    """A local file planned for publication.

    The bytes are not held here; they are read once per publish attempt
    and never modified.
    """

    model_config = ConfigDict(frozen=True)

    local_path: Path
    size_bytes: int
    remote_path: str
    kind: ArtifactKind
    content_key: str
    tier: Tier

    @property
    def basename(self) -> str:
        return self.local_path.name

    @property
    def commit_message(self) -> str:
        return f"Add {self.basename}"


def format_iec(size: int) -> str:
    """Render a byte count with binary (IEC) units, e.g. ``5.0MiB``."""
    if size < 1024:
        return f"{size}B"
    value = float(size)
    unit = "B"
    for unit in ("KiB", "MiB", "GiB"):
        value /= 1024
        if value < 1024:
            break
    return f"{value:.1f}{unit}"
