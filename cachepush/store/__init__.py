"""Remote store backends.

``RemoteStore`` is the capability set the publishing protocol needs;
``GitHubStore`` implements it over the GitHub REST API and
``InMemoryStore`` in process.
"""

from cachepush.store.base import RemoteStore
from cachepush.store.github import GitHubStore
from cachepush.store.memory import InMemoryStore

__all__ = ["GitHubStore", "InMemoryStore", "RemoteStore"]
