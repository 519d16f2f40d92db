"""Hashing helpers for content identity and object ids.

Blob ids use git's object format so a locally computed id can be compared
with the version token the remote store reports for a path.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact."""
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True
    ).encode("utf-8")


def git_object_sha(kind: str, payload: bytes) -> str:
    """SHA-1 of ``"<kind> <len>\\0" + payload``, the git object id."""
    header = f"{kind} {len(payload)}\0".encode("ascii")
    return hashlib.sha1(header + payload).hexdigest()


def git_blob_sha(data: bytes) -> str:
    """Git blob id of raw bytes (what GitHub reports as a file's ``sha``)."""
    return git_object_sha("blob", data)


def tree_sha(entries: dict[str, str]) -> str:
    """Object id of a flat path -> blob mapping.

    Not byte-compatible with git trees; only used by the in-process store,
    where it needs to be stable and collision-free.
    """
    return git_object_sha("tree", canonical_json_bytes(entries))


def commit_sha(tree: str, parents: list[str], message: str, timestamp: str) -> str:
    """Object id of a commit record."""
    payload = {
        "tree": tree,
        "parents": parents,
        "message": message,
        "timestamp": timestamp,
    }
    return git_object_sha("commit", canonical_json_bytes(payload))
