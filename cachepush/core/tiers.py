"""Size-tiered write strategy selection.

- SMALL    (< 1 MiB):          single conditional write of the path content
- LARGE    (1 MiB .. 100 MiB): blob / tree / commit / ref transaction
- REJECTED (> 100 MiB):        refused before any network call
"""

from __future__ import annotations

from cachepush.core.errors import RejectedSizeError
from cachepush.models.artifacts import Tier, format_iec

SMALL_LIMIT = 1024 * 1024  # exclusive upper bound of the small tier
LARGE_LIMIT = 100 * 1024 * 1024  # inclusive upper bound of the large tier


def classify(size_bytes: int) -> Tier:
    """Classify an artifact by its byte length."""
    if size_bytes < 0:
        raise ValueError(f"Artifact size cannot be negative: {size_bytes}")
    if size_bytes < SMALL_LIMIT:
        return Tier.SMALL
    if size_bytes <= LARGE_LIMIT:
        return Tier.LARGE
    return Tier.REJECTED


def ensure_publishable(size_bytes: int) -> Tier:
    """Classify, raising ``RejectedSizeError`` for the rejected tier."""
    tier = classify(size_bytes)
    if tier == Tier.REJECTED:
        raise RejectedSizeError(
            f"Artifact is {format_iec(size_bytes)}, larger than the "
            f"{format_iec(LARGE_LIMIT)} limit"
        )
    return tier
