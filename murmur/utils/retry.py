"""Retry utilities with exponential backoff for remote API calls."""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
AsyncF = TypeVar("AsyncF", bound=Callable[..., Any])


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Maximum number of attempts (including the initial one)
        base_delay: Delay in seconds before the first retry
        max_delay: Ceiling in seconds for any single delay
        exponential_base: Base for exponential backoff calculation
        jitter: Whether to add random jitter to delays
        retriable_exceptions: Exception types retried even when they carry no
            ``retryable`` flag of their own
    """

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    exponential_base: float = 2.0
    jitter: bool = True
    retriable_exceptions: Tuple[Type[BaseException], ...] = field(
        default_factory=lambda: (ConnectionError, TimeoutError)
    )

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be non-negative")
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")
        if self.exponential_base < 1:
            raise ValueError("exponential_base must be >= 1")

        if self.max_attempts > 10:
            raise ValueError("max_attempts should not exceed 10 for practical purposes")
        if self.max_delay > 300:
            raise ValueError("max_delay should not exceed 300 seconds for practical purposes")

    def calculate_backoff_delay(self, attempt: int) -> float:
        """Delay before ``attempt`` (0-based; attempt 0 never waits)."""
        return calculate_delay(
            attempt, self.base_delay, self.max_delay, self.exponential_base, self.jitter
        )


def calculate_delay(
    attempt: int, base_delay: float, max_delay: float, exponential_base: float, jitter: bool = True
) -> float:
    """Calculate delay for a given retry attempt with exponential backoff and jitter.

    Args:
        attempt: Current attempt number (0-based)
        base_delay: Base delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential calculation
        jitter: Whether to add random jitter

    Returns:
        Calculated delay in seconds, always between 0 and max_delay
    """
    if attempt == 0:
        return 0.0

    backoff = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)

    if jitter:
        # ±25%
        jitter_range = backoff * 0.25
        backoff += random.uniform(-jitter_range, jitter_range)

    return max(0.0, min(backoff, max_delay))


def is_retriable_exception(
    exception: BaseException, retriable_exceptions: Tuple[Type[BaseException], ...] = ()
) -> bool:
    """Check if an exception should trigger a retry.

    Exceptions from ``murmur.errors`` carry a ``retryable`` flag which wins over
    the type list; anything else is retried only if it matches
    ``retriable_exceptions``.
    """
    retryable = getattr(exception, "retryable", None)
    if retryable is not None:
        return bool(retryable)
    return isinstance(exception, retriable_exceptions)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    description: str = "operation",
) -> T:
    """Await ``operation()`` until it succeeds or retries are exhausted.

    The last exception is re-raised unchanged once the attempt budget runs out
    or a non-retriable exception is seen, so callers can map it to a message.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        config: Retry settings (defaults to ``RetryConfig()``)
        description: Label used in log messages

    Returns:
        The operation's result
    """
    config = config or RetryConfig()

    for attempt in range(config.max_attempts):
        if attempt > 0:
            logger.info(f"Retry attempt {attempt + 1}/{config.max_attempts} for {description}")
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not is_retriable_exception(e, config.retriable_exceptions):
                logger.debug(f"Non-retriable exception in {description}: {e}")
                raise

            if attempt + 1 >= config.max_attempts:
                logger.error(f"All retry attempts exhausted for {description}: {e}")
                raise

            delay = config.calculate_backoff_delay(attempt + 1)
            logger.warning(
                f"Attempt {attempt + 1}/{config.max_attempts} failed for {description}: {e}. "
                f"Retrying in {delay:.2f}s..."
            )
            await asyncio.sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover


def retry_async(config: Optional[RetryConfig] = None) -> Callable[[AsyncF], AsyncF]:
    """Decorator form of :func:`call_with_retry`.

    Example:
        @retry_async(RetryConfig(max_attempts=3, base_delay=1.0))
        async def fetch_models():
            ...
    """

    def decorator(func: AsyncF) -> AsyncF:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            return await call_with_retry(
                lambda: func(*args, **kwargs), config, description=func.__name__
            )

        return wrapper  # type: ignore

    return decorator
