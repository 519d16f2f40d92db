"""cachepush data models — all Pydantic v2, all frozen (immutable)."""

from cachepush.models.artifacts import (
    Artifact,
    ArtifactKind,
    ResolvedPath,
    Tier,
    format_iec,
)
from cachepush.models.objects import BlobRef, Commit, Destination, PathVersion, Tree
from cachepush.models.outcomes import (
    BatchReport,
    PublishResult,
    PublishStatus,
    WriteReceipt,
)

__all__ = [
    # artifacts
    "Artifact",
    "ArtifactKind",
    "ResolvedPath",
    "Tier",
    "format_iec",
    # remote objects
    "BlobRef",
    "Commit",
    "Destination",
    "PathVersion",
    "Tree",
    # outcomes
    "BatchReport",
    "PublishResult",
    "PublishStatus",
    "WriteReceipt",
]
