"""Sliding-window rate limiting for outbound API calls."""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Any, Callable, Deque, Dict

logger = logging.getLogger(__name__)


class RateLimiter:
    """Bounds the number of calls made within a trailing time window.

    The limiter keeps the timestamps of admitted calls in arrival order. Each
    check prunes timestamps that have left the window from the front, so the
    deque never holds more than ``max_calls`` entries and never holds entries
    older than ``window_seconds``.

    A rejection is an ordinary ``False`` return, paired with
    ``get_time_until_reset()`` so the caller can tell the user how long to wait.
    """

    def __init__(
        self,
        max_calls: int = 10,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            max_calls: Maximum number of calls admitted within the window
            window_seconds: Length of the trailing window in seconds
            clock: Time source returning seconds; injectable for tests
        """
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_calls = max_calls
        self.window_seconds = window_seconds
        self._clock = clock
        self._calls: Deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()

    def is_allowed(self) -> bool:
        """Check the budget and record the call if it fits.

        Returns:
            True if the call is admitted (and recorded), False otherwise
        """
        with self._lock:
            now = self._clock()
            self._prune(now)

            if len(self._calls) < self.max_calls:
                self._calls.append(now)
                return True

        logger.debug(
            f"Rate limit reached ({self.max_calls} calls per {self.window_seconds}s)"
        )
        return False

    def get_time_until_reset(self) -> float:
        """Seconds until the oldest recorded call leaves the window.

        Returns:
            0.0 when nothing is recorded, otherwise the non-negative wait
        """
        with self._lock:
            if not self._calls:
                return 0.0
            return max(0.0, self._calls[0] + self.window_seconds - self._clock())

    def get_status(self) -> Dict[str, Any]:
        """Current budget usage for diagnostics."""
        with self._lock:
            now = self._clock()
            self._prune(now)
            used = len(self._calls)
            until_reset = (
                max(0.0, self._calls[0] + self.window_seconds - now) if self._calls else 0.0
            )

        return {
            "used": used,
            "max_calls": self.max_calls,
            "remaining": self.max_calls - used,
            "window_seconds": self.window_seconds,
            "time_until_reset": until_reset,
        }

    def reset(self) -> None:
        """Forget every recorded call."""
        with self._lock:
            self._calls.clear()
