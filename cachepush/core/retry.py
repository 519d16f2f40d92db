"""Optimistic retry loop over the shared branch pointer.

The branch ref is the only mutable shared state.  Writers read it, build
new state on top, and advance it with a compare-and-swap.  Losing the swap
raises ``ConflictError``; this module repeats the attempt with jittered
exponential backoff until it succeeds or the budget is spent.

Objects created by a losing attempt (blobs, trees, commits) are never
referenced by the ref and are left for garbage collection.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable
from typing import TypeVar

from pydantic import BaseModel, ConfigDict, Field

from cachepush.core.errors import ConflictError, ContentionExhaustedError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Bounded attempts with exponential backoff and random jitter.

    The delay before attempt ``n + 1`` is
    ``min(max_delay, base_delay * 2 ** (n - 1))`` scaled by a random factor
    in ``[1 - jitter, 1]``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=5, ge=1)
    base_delay: float = Field(default=0.5, ge=0.0)
    max_delay: float = Field(default=8.0, ge=0.0)
    jitter: float = Field(default=0.5, ge=0.0, le=1.0)

    def delay_for(self, attempt: int, rng: random.Random) -> float:
        """Seconds to wait after failed attempt number *attempt* (1-based)."""
        ceiling = min(self.max_delay, self.base_delay * (2 ** (attempt - 1)))
        return ceiling * rng.uniform(1.0 - self.jitter, 1.0)


class OptimisticLoop:
    """Runs read-check-write attempts until one wins the compare-and-swap.

    Parameters
    ----------
    policy:
        Attempt budget and backoff.
    sleep:
        Called with the backoff delay between attempts.
    rng:
        Source of jitter.
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rng = rng or random.Random()

    def run(self, attempt_fn: Callable[[int], T], *, label: str = "") -> T:
        """Call ``attempt_fn(attempt)`` until it returns without a conflict.

        Raises
        ------
        ContentionExhaustedError
            If every attempt in the budget raised ``ConflictError``.
        """
        last: ConflictError | None = None
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                return attempt_fn(attempt)
            except ConflictError as exc:
                last = exc
                if attempt == self.policy.max_attempts:
                    break
                delay = self.policy.delay_for(attempt, self._rng)
                logger.info(
                    "Conflict on %s (attempt %d/%d): %s; retrying in %.2fs",
                    label or "write",
                    attempt,
                    self.policy.max_attempts,
                    exc,
                    delay,
                )
                self._sleep(delay)

        raise ContentionExhaustedError(
            f"Gave up on {label or 'write'} after "
            f"{self.policy.max_attempts} conflicting attempts",
            attempts=self.policy.max_attempts,
        ) from last


def retry_transport(
    request_fn: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
    label: str = "",
) -> T:
    """Repeat a store request while it fails with a retryable ``TransportError``.

    Non-retryable transport errors and every other exception propagate
    immediately.  After the last attempt the final error propagates.
    """
    rng = rng or random.Random()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            return request_fn()
        except TransportError as exc:
            if not exc.retryable or attempt == policy.max_attempts:
                raise
            delay = policy.delay_for(attempt, rng)
            logger.warning(
                "Transport error on %s (attempt %d/%d): %s; retrying in %.2fs",
                label or "request",
                attempt,
                policy.max_attempts,
                exc,
                delay,
            )
            sleep(delay)
    raise AssertionError("unreachable")  # pragma: no cover
