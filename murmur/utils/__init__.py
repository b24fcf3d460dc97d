"""Utility modules for the request orchestration layer."""

from .logging_factory import LoggingFactory, get_logger
from .rate_limit import RateLimiter
from .retry import (
    RetryConfig,
    calculate_delay,
    call_with_retry,
    is_retriable_exception,
    retry_async,
)

__all__ = [
    "LoggingFactory",
    "RateLimiter",
    "RetryConfig",
    "calculate_delay",
    "call_with_retry",
    "get_logger",
    "is_retriable_exception",
    "retry_async",
]
