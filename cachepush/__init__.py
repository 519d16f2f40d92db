"""cachepush: publish build artifacts to a git-backed binary cache.

Artifacts are classified by size and written either with one conditional
contents write (under 1 MiB) or with a blob/tree/commit transaction that
advances the branch by compare-and-swap (up to 100 MiB).  Concurrent and
retried publishes are safe: the branch is only ever moved from the tip a
writer actually built on.
"""

__version__ = "0.3.0"
__description__ = "Publish build artifacts to a git-backed binary cache"

from cachepush.core.publisher import Publisher
from cachepush.core.path_resolver import PathResolver
from cachepush.store import GitHubStore, InMemoryStore
from cachepush.cli.app import app as cli

__all__ = [
    "GitHubStore",
    "InMemoryStore",
    "PathResolver",
    "Publisher",
    "cli",
    "__version__",
]
