"""Small-tier writer — one conditional write of the path content.

The current version of the path is read first; the write is then
conditioned on that version (or on the path not existing).  If another
writer changed the path in between, the store raises ``ConflictError``
and the optimistic loop re-reads and tries again.
"""

from __future__ import annotations

import logging

from cachepush.core.hasher import git_blob_sha
from cachepush.core.retry import OptimisticLoop
from cachepush.models.outcomes import WriteReceipt
from cachepush.store.base import RemoteStore

logger = logging.getLogger(__name__)


class SmallObjectWriter:
    """Writes artifacts under 1 MiB with a single conditional call.

    Parameters
    ----------
    store:
        The remote store.
    branch:
        Branch whose tip the write is applied to.
    loop:
        Retry loop used when the conditioned write loses a race.
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
        """Make *remote_path* hold exactly *content*.

        Returns a receipt without a commit if the path already held the
        same bytes.
        """
        local_sha = git_blob_sha(content)

        def attempt(n: int) -> WriteReceipt:
            current = self._store.read_path(remote_path, self._branch)
            if current is not None and current.sha == local_sha:
                logger.debug("%s already at %s", remote_path, local_sha[:12])
                return WriteReceipt(
                    remote_path=remote_path, blob_sha=local_sha, attempts=n
                )

            commit = self._store.write_path(
                remote_path,
                content,
                message=message,
                branch=self._branch,
                expected_sha=current.sha if current is not None else None,
            )
            return WriteReceipt(
                remote_path=remote_path,
                blob_sha=local_sha,
                commit_sha=commit,
                attempts=n,
            )

        return self._loop.run(attempt, label=remote_path)
