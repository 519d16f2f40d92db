"""In-process object store with the same semantics as the remote API.

Blob ids match git's, so version tokens agree with locally computed
hashes.  Every mutation happens under one lock, which makes the
conditional operations atomic across threads.  Useful as a sandbox
destination and as the backend for protocol tests.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone

from cachepush.core.errors import ConflictError, NotFoundError
from cachepush.core.hasher import commit_sha, git_blob_sha, tree_sha
from cachepush.models.objects import BlobRef, Commit, PathVersion, Tree

logger = logging.getLogger(__name__)


class InMemoryStore:
    """Thread-safe, content-addressed store with branch refs.

    Parameters
    ----------
    branch:
        Branch created at construction, pointing at an empty root commit.
        Pass ``None`` to start with no branches at all.
    """

    def __init__(self, branch: str | None = "main") -> None:
        self._lock = threading.Lock()
        self._blobs: dict[str, bytes] = {}
        self._trees: dict[str, dict[str, str]] = {}
        self._commits: dict[str, Commit] = {}
        self._refs: dict[str, str] = {}
        self._clock = 0

        if branch is not None:
            with self._lock:
                empty = self._put_tree({})
                root = self._put_commit("Initial commit", empty, None)
                self._refs[branch] = root.sha

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @property
    def blob_count(self) -> int:
        return len(self._blobs)

    @property
    def tree_count(self) -> int:
        return len(self._trees)

    @property
    def commit_count(self) -> int:
        return len(self._commits)

    @property
    def refs(self) -> dict[str, str]:
        with self._lock:
            return dict(self._refs)

    def read_bytes(self, path: str, ref: str = "main") -> bytes:
        """Return the content stored at *path* on *ref*."""
        version = self.read_path(path, ref)
        if version is None:
            raise NotFoundError(f"No content at {path} on {ref}")
        return self._blobs[version.sha]

    def tip_tree(self, branch: str = "main") -> Tree:
        """The tree of the current tip of *branch*."""
        return self.read_tree(self.read_commit(self.read_ref(branch)).tree)

    # ------------------------------------------------------------------
    # Path content
    # ------------------------------------------------------------------

    def read_path(self, path: str, ref: str) -> PathVersion | None:
        with self._lock:
            entries = self._trees[self._resolve_commit(ref).tree]
            sha = entries.get(path)
            if sha is None:
                return None
            return PathVersion(path=path, sha=sha, size_bytes=len(self._blobs[sha]))

    def write_path(
        self,
        path: str,
        content: bytes,
        *,
        message: str,
        branch: str,
        expected_sha: str | None,
    ) -> str:
        with self._lock:
            tip = self._resolve_commit(branch)
            entries = self._trees[tip.tree]
            current = entries.get(path)
            if current != expected_sha:
                raise ConflictError(
                    f"{path} is at {current or 'nothing'}, expected "
                    f"{expected_sha or 'nothing'}"
                )
            blob = self._put_blob(content)
            tree = self._put_tree({**entries, path: blob})
            commit = self._put_commit(message, tree, tip.sha)
            self._refs[branch] = commit.sha
            logger.debug("write_path %s -> commit %s", path, commit.sha[:12])
            return commit.sha

    # ------------------------------------------------------------------
    # Git data
    # ------------------------------------------------------------------

    def create_blob(self, content: bytes) -> BlobRef:
        with self._lock:
            return BlobRef(sha=self._put_blob(content), size_bytes=len(content))

    def read_ref(self, branch: str) -> str:
        with self._lock:
            if branch not in self._refs:
                raise NotFoundError(f"Branch not found: {branch}")
            return self._refs[branch]

    def read_commit(self, sha: str) -> Commit:
        with self._lock:
            if sha not in self._commits:
                raise NotFoundError(f"Commit not found: {sha}")
            return self._commits[sha]

    def read_tree(self, sha: str) -> Tree:
        with self._lock:
            if sha not in self._trees:
                raise NotFoundError(f"Tree not found: {sha}")
            return Tree(sha=sha, entries=dict(self._trees[sha]))

    def create_tree(self, base_tree: str, entries: dict[str, str]) -> str:
        with self._lock:
            if base_tree not in self._trees:
                raise NotFoundError(f"Base tree not found: {base_tree}")
            missing = [sha for sha in entries.values() if sha not in self._blobs]
            if missing:
                raise NotFoundError(f"Blobs not found: {', '.join(missing)}")
            return self._put_tree({**self._trees[base_tree], **entries})

    def create_commit(self, *, message: str, tree: str, parent: str) -> Commit:
        with self._lock:
            if tree not in self._trees:
                raise NotFoundError(f"Tree not found: {tree}")
            if parent not in self._commits:
                raise NotFoundError(f"Parent commit not found: {parent}")
            return self._put_commit(message, tree, parent)

    def update_ref(self, branch: str, *, expected: str, new: str) -> None:
        with self._lock:
            if branch not in self._refs:
                raise NotFoundError(f"Branch not found: {branch}")
            if new not in self._commits:
                raise NotFoundError(f"Commit not found: {new}")
            current = self._refs[branch]
            if current != expected:
                raise ConflictError(
                    f"{branch} moved to {current[:12]}, expected {expected[:12]}"
                )
            self._refs[branch] = new

    # ------------------------------------------------------------------
    # Internal (caller holds the lock)
    # ------------------------------------------------------------------

    def _resolve_commit(self, ref: str) -> Commit:
        sha = self._refs.get(ref, ref)
        if sha not in self._commits:
            raise NotFoundError(f"Ref not found: {ref}")
        return self._commits[sha]

    def _put_blob(self, content: bytes) -> str:
        sha = git_blob_sha(content)
        self._blobs.setdefault(sha, bytes(content))
        return sha

    def _put_tree(self, entries: dict[str, str]) -> str:
        sha = tree_sha(entries)
        self._trees.setdefault(sha, dict(entries))
        return sha

    def _put_commit(self, message: str, tree: str, parent: str | None) -> Commit:
        # A logical clock keeps ids unique for commits with identical content.
        self._clock += 1
        stamp = f"{datetime.now(timezone.utc).isoformat()}#{self._clock}"
        parents = [parent] if parent else []
        commit = Commit(
            sha=commit_sha(tree, parents, message, stamp),
            tree=tree,
            parents=parents,
            message=message,
        )
        self._commits[commit.sha] = commit
        return commit
