"""Remote object model — blobs, trees, commits and path versions.

Identifiers are git object ids (hex sha1), as handed out by the store.
History is linear: a commit has zero or one parent.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class BlobRef(BaseModel):
    """Staged content that is not yet reachable from any tree."""

    model_config = ConfigDict(frozen=True)

    sha: str
    size_bytes: int = 0


class PathVersion(BaseModel):
    """The version token of the content currently stored at a path."""

    model_config = ConfigDict(frozen=True)

    path: str
    sha: str
    size_bytes: int = 0


class Tree(BaseModel):
    """A full snapshot: remote path -> blob sha."""

    model_config = ConfigDict(frozen=True)

    sha: str
    entries: dict[str, str] = Field(default_factory=dict)

    def get(self, path: str) -> str | None:
        return self.entries.get(path)

    def __len__(self) -> int:
        return len(self.entries)


class Commit(BaseModel):
    """An immutable snapshot pointer."""

    model_config = ConfigDict(frozen=True)

    sha: str
    tree: str
    parents: list[str] = Field(default_factory=list)
    message: str = ""

    @property
    def parent(self) -> str | None:
        return self.parents[0] if self.parents else None


class Destination(BaseModel):
    """The repository and branch artifacts are published to."""

    model_config = ConfigDict(frozen=True)

    owner: str
    repo: str
    branch: str = "main"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"
