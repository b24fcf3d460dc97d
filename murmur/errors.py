"""Error taxonomy for the request orchestration layer.

Every failure that can end a job maps onto one of these types. They are raised
inside the collaborator and the orchestrator and normalised into
``{success: False, error: message}`` results at the public boundary, so callers
of the public API see plain results while internal code can still branch on
the failure kind.

Retry guidance is carried on the exception itself:

    - InputNotFoundError: input missing, never retried
    - RateLimitExceededError: retry after ``retry_after`` seconds
    - TransportError / RequestTimeoutError: network trouble, retryable
    - UpstreamError: service returned an error payload, retryable for 408/429/5xx
    - JobCancelledError: user-initiated abort, not an automatic retry candidate
"""
from __future__ import annotations

import math
from typing import Any, Optional

RETRIABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

CANCELLED_MESSAGE = "Processing aborted by user"


class MurmurError(Exception):
    """Base class for all orchestration-layer errors."""

    retryable: bool = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InputNotFoundError(MurmurError):
    """Raised when the audio input referenced by a job does not exist."""

    def __init__(self, path: Any) -> None:
        self.path = path
        super().__init__(f"Audio file not found: {path}")


class CacheKeyError(MurmurError):
    """Raised when a cache key cannot be derived from a file."""


class RateLimitExceededError(MurmurError):
    """Raised when the outbound call budget is exhausted.

    Attributes:
        retry_after: Seconds until a slot in the rate window frees up
    """

    retryable = True

    def __init__(self, retry_after: float) -> None:
        self.retry_after = retry_after
        wait = max(1, math.ceil(retry_after))
        super().__init__(
            f"Rate limit exceeded. Please wait {wait} seconds before trying again."
        )


class TransportError(MurmurError):
    """Raised when the remote service cannot be reached."""

    retryable = True


class RequestTimeoutError(TransportError):
    """Raised when a remote call exceeds the transport timeout."""


class UpstreamError(MurmurError):
    """Raised when the remote service answers with an error payload.

    Attributes:
        status_code: HTTP status returned by the service
        payload: Decoded error body, if any
    """

    def __init__(
        self, message: str, status_code: int, payload: Optional[Any] = None
    ) -> None:
        self.status_code = status_code
        self.payload = payload
        self.retryable = status_code in RETRIABLE_STATUS_CODES
        super().__init__(message)


class JobCancelledError(MurmurError):
    """Raised inside a job when its cancellation token wins the race."""

    def __init__(self, message: str = CANCELLED_MESSAGE) -> None:
        super().__init__(message)


class JobRejectedError(MurmurError):
    """Raised when a job cannot be admitted (duplicate id or full queue)."""
