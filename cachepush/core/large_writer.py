"""Large-tier writer — blob, tree, commit and ref in four steps.

1. Stage the content as a blob (once per write; reused on retry).
2. Read the branch tip and its tree.
3. Build a tree equal to the tip's with the target path pointing at the
   staged blob.
4. Commit that tree on top of the tip and advance the branch, on the
   condition that it still points at the tip read in step 2.

Steps 2-4 run inside ``OptimisticLoop``: if the branch moved, the whole
read-build-commit sequence is repeated against the new tip.  No
unconditional ref update is ever issued.
"""

from __future__ import annotations

import logging

from cachepush.core.retry import OptimisticLoop
from cachepush.core.tiers import ensure_publishable
from cachepush.models.objects import BlobRef
from cachepush.models.outcomes import WriteReceipt
from cachepush.store.base import RemoteStore

logger = logging.getLogger(__name__)


class LargeObjectWriter:
    """Writes artifacts of 1 MiB to 100 MiB through the git data API.

    Parameters
    ----------
    store:
        The remote store.
    branch:
        Branch to advance.
    loop:
        Retry loop around steps 2-4.
    """

    def __init__(
        self,
        store: RemoteStore,
        branch: str,
        loop: OptimisticLoop | None = None,
    ) -> None:
        self._store = store
        self._branch = branch
        self._loop = loop or OptimisticLoop()

    def write(self, remote_path: str, content: bytes, message: str) -> WriteReceipt:
        """Commit *content* at *remote_path* on the branch."""
        ensure_publishable(len(content))
        blob = self._store.create_blob(content)
        logger.debug("Staged %s as blob %s", remote_path, blob.sha[:12])
        return self._loop.run(
            lambda n: self._commit_blob(remote_path, blob, message, n),
            label=remote_path,
        )

    def _commit_blob(
        self, remote_path: str, blob: BlobRef, message: str, attempt: int
    ) -> WriteReceipt:
        tip = self._store.read_ref(self._branch)
        base = self._store.read_commit(tip)

        current = self._store.read_path(remote_path, tip)
        if current is not None and current.sha == blob.sha:
            logger.debug("%s already at %s", remote_path, blob.sha[:12])
            return WriteReceipt(
                remote_path=remote_path, blob_sha=blob.sha, attempts=attempt
            )

        tree = self._store.create_tree(base.tree, {remote_path: blob.sha})
        commit = self._store.create_commit(message=message, tree=tree, parent=tip)
        self._store.update_ref(self._branch, expected=tip, new=commit.sha)

        logger.debug(
            "Advanced %s %s -> %s for %s",
            self._branch,
            tip[:12],
            commit.sha[:12],
            remote_path,
        )
        return WriteReceipt(
            remote_path=remote_path,
            blob_sha=blob.sha,
            commit_sha=commit.sha,
            attempts=attempt,
        )
