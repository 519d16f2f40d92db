"""Publish error taxonomy.

Each error carries the ``PublishStatus`` it is reported as, so the
publisher can record a per-artifact outcome without inspecting messages.
"""

from __future__ import annotations

from typing import ClassVar

from cachepush.models.outcomes import PublishStatus


class PublishError(RuntimeError):
    """Base class for failures while publishing a single artifact."""

    status: ClassVar[PublishStatus] = PublishStatus.TRANSPORT_ERROR
    retryable: bool = False


class RejectedSizeError(PublishError):
    """Raised when an artifact exceeds the largest supported size.

    Not retryable. No chunked or external-storage fallback is attempted.
    """

    status = PublishStatus.REJECTED


class ConflictError(PublishError):
    """Raised when a conditioned write loses a race.

    The path version or the branch tip changed between read and write.
    Callers re-read and re-attempt.
    """

    status = PublishStatus.CONFLICT
    retryable = True


class ContentionExhaustedError(PublishError):
    """Raised when the optimistic retry budget is spent on conflicts."""

    status = PublishStatus.CONTENTION_EXHAUSTED

    def __init__(self, message: str, *, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


class TransportError(PublishError):
    """Raised on network, authentication or rate-limit failures.

    Parameters
    ----------
    retryable:
        Whether repeating the request may succeed (timeouts, 5xx,
        rate limiting).  Authentication failures are not retryable.
    status_code:
        HTTP status of the failed response, if there was one.
    """

    status = PublishStatus.TRANSPORT_ERROR

    def __init__(
        self,
        message: str,
        *,
        retryable: bool = False,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class NotFoundError(PublishError):
    """Raised when expected prior state (a ref, commit or tree) is missing.

    Indicates a misconfigured destination: wrong repository or branch.
    """

    status = PublishStatus.NOT_FOUND
