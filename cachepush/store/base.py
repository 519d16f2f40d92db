"""The remote store capability set the publishing protocol depends on.

Any backend providing these operations can be published to; the core
never depends on a particular transport.

Conditional operations
----------------------
``write_path`` succeeds only if the path still holds ``expected_sha``
(or, with ``expected_sha=None``, does not exist yet).  ``update_ref``
succeeds only if the branch still points at ``expected``.  Both raise
``ConflictError`` otherwise.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from cachepush.models.objects import BlobRef, Commit, PathVersion, Tree


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for content-addressed, version-controlled object stores."""

    def read_path(self, path: str, ref: str) -> PathVersion | None:
        """Return the version stored at *path* as of *ref*, or ``None``.

        *ref* may be a branch name or a commit id.
        """
        ...

    def write_path(
        self,
        path: str,
        content: bytes,
        *,
        message: str,
        branch: str,
        expected_sha: str | None,
    ) -> str:
        """Write *content* to *path* in one commit; return the commit id."""
        ...

    def create_blob(self, content: bytes) -> BlobRef:
        """Stage *content*; the result is not reachable from any tree."""
        ...

    def read_ref(self, branch: str) -> str:
        """Return the tip commit id of *branch*."""
        ...

    def read_commit(self, sha: str) -> Commit:
        ...

    def read_tree(self, sha: str) -> Tree:
        ...

    def create_tree(self, base_tree: str, entries: dict[str, str]) -> str:
        """Return the id of *base_tree* with *entries* (path -> blob) applied."""
        ...

    def create_commit(self, *, message: str, tree: str, parent: str) -> Commit:
        ...

    def update_ref(self, branch: str, *, expected: str, new: str) -> None:
        """Advance *branch* from *expected* to *new* (compare-and-swap)."""
        ...
