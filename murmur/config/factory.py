"""Factories that wire library components from a :class:`Config`."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Tuple

from ..cache import CacheManager
from ..models import FormatResult, TranscriptionResult
from ..utils.rate_limit import RateLimiter
from ..utils.retry import RetryConfig

if TYPE_CHECKING:
    import httpx

    from ..orchestration import JobOrchestrator
    from ..providers import OpenAIClient
    from . import Config


def build_rate_limiter(config: "Config") -> RateLimiter:
    return RateLimiter(
        max_calls=config.rate_limit_max_requests, window_seconds=config.rate_limit_window
    )


def build_caches(
    config: "Config",
) -> Tuple[CacheManager[TranscriptionResult], CacheManager[FormatResult]]:
    """Build the transcription and formatting caches.

    Periodic sweeps are disabled when ``ENVIRONMENT=test``.

    Returns:
        ``(transcription_cache, formatting_cache)``
    """
    timers = config.cache_timers_enabled
    transcription_cache: CacheManager[TranscriptionResult] = CacheManager(
        max_size=config.transcription_cache_max_size,
        default_ttl=config.transcription_cache_ttl,
        cleanup_interval=config.transcription_cache_cleanup_interval if timers else None,
        name="transcription-cache",
    )
    formatting_cache: CacheManager[FormatResult] = CacheManager(
        max_size=config.formatting_cache_max_size,
        default_ttl=config.formatting_cache_ttl,
        cleanup_interval=config.formatting_cache_cleanup_interval if timers else None,
        name="formatting-cache",
    )
    return transcription_cache, formatting_cache


def build_retry_config(config: "Config") -> RetryConfig:
    return RetryConfig(
        max_attempts=max(1, config.max_retries),
        base_delay=config.retry_delay,
        max_delay=max(config.retry_delay, config.max_retry_delay),
    )


def build_client(
    config: "Config", http_client: Optional["httpx.AsyncClient"] = None
) -> "OpenAIClient":
    """Build an :class:`OpenAIClient` with its own caches and rate limiter.

    Raises:
        ValueError: If ``OPENAI_API_KEY`` is not configured
    """
    from ..providers import OpenAIClient

    if not config.OPENAI_API_KEY:
        raise ValueError(
            "OPENAI_API_KEY environment variable not found. "
            "Set it in your environment or create a .env file with: "
            "OPENAI_API_KEY=your-api-key-here"
        )

    transcription_cache, formatting_cache = build_caches(config)
    return OpenAIClient(
        api_key=config.OPENAI_API_KEY,
        base_url=config.openai_base_url,
        timeout=config.request_timeout,
        transcription_cache=transcription_cache,
        formatting_cache=formatting_cache,
        rate_limiter=build_rate_limiter(config),
        retry_config=build_retry_config(config),
        http_client=http_client,
    )


def build_orchestrator(config: "Config", client: Any) -> "JobOrchestrator":
    """Build a :class:`JobOrchestrator` around an existing remote client."""
    from ..orchestration import JobOrchestrator

    return JobOrchestrator(
        client,
        temp_dir=config.temp_dir,
        max_concurrent_jobs=config.max_concurrent_jobs,
        max_queued_jobs=config.max_queued_jobs,
        progress_interval=config.progress_interval,
    )
