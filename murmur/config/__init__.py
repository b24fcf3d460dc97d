"""Configuration management using environment variables.

Values come from the process environment, with a ``.env`` file (if present)
loaded through python-dotenv first. Library classes never read this module;
they receive explicit collaborators, and the factories in
``murmur.config.factory`` wire those from a :class:`Config`.
"""
from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DAY = 24 * 60 * 60
HOUR = 60 * 60


def _getenv(key: str, default: str = "") -> str:
    """Get environment variable with default."""
    return os.getenv(key, default)


def _getenv_int(key: str, default: int) -> int:
    """Get integer environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as integer
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid integer value for {key}='{value}'. "
            f"Expected integer, got: {value}"
        ) from e


def _getenv_optional_int(key: str) -> Optional[int]:
    value = os.getenv(key)
    if value is None or value == "":
        return None
    return _getenv_int(key, 0)


def _getenv_float(key: str, default: float) -> float:
    """Get float environment variable with validation.

    Raises:
        ValueError: If value cannot be parsed as float
    """
    value = os.getenv(key)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(
            f"Invalid float value for {key}='{value}'. "
            f"Expected float, got: {value}"
        ) from e


def _getenv_path(key: str) -> Optional[Path]:
    value = os.getenv(key)
    return Path(value) if value else None


def load_environment(env_file: Optional[Path] = None) -> Optional[Path]:
    """Load a ``.env`` file into the process environment.

    Existing variables are never overridden. Without ``env_file`` the current
    directory, its parent and the home directory are searched in that order.

    Returns:
        The file that was loaded, or None
    """
    candidates = [env_file] if env_file else [Path(".env"), Path("../.env"), Path.home() / ".env"]

    for env_path in candidates:
        if env_path is not None and env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
            return env_path
    return None


@dataclass
class Config:
    """Application configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: _getenv("ENVIRONMENT", "production"))

    # ========== Remote Service ==========
    OPENAI_API_KEY: Optional[str] = field(default_factory=lambda: _getenv("OPENAI_API_KEY") or None)
    openai_base_url: str = field(
        default_factory=lambda: _getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    )
    request_timeout: float = field(default_factory=lambda: _getenv_float("REQUEST_TIMEOUT", 60.0))

    # ========== Rate Limiting ==========
    rate_limit_max_requests: int = field(
        default_factory=lambda: _getenv_int("RATE_LIMIT_MAX_REQUESTS", 10)
    )
    rate_limit_window: float = field(default_factory=lambda: _getenv_float("RATE_LIMIT_WINDOW", 60.0))

    # ========== Caching ==========
    transcription_cache_max_size: int = field(
        default_factory=lambda: _getenv_int("TRANSCRIPTION_CACHE_MAX_SIZE", 100)
    )
    transcription_cache_ttl: float = field(
        default_factory=lambda: _getenv_float("TRANSCRIPTION_CACHE_TTL", 7 * DAY)
    )
    transcription_cache_cleanup_interval: float = field(
        default_factory=lambda: _getenv_float("TRANSCRIPTION_CACHE_CLEANUP_INTERVAL", HOUR)
    )
    formatting_cache_max_size: int = field(
        default_factory=lambda: _getenv_int("FORMATTING_CACHE_MAX_SIZE", 50)
    )
    formatting_cache_ttl: float = field(
        default_factory=lambda: _getenv_float("FORMATTING_CACHE_TTL", DAY)
    )
    formatting_cache_cleanup_interval: float = field(
        default_factory=lambda: _getenv_float("FORMATTING_CACHE_CLEANUP_INTERVAL", 30 * 60)
    )

    # ========== Jobs ==========
    max_concurrent_jobs: int = field(default_factory=lambda: _getenv_int("MAX_CONCURRENT_JOBS", 3))
    max_queued_jobs: Optional[int] = field(
        default_factory=lambda: _getenv_optional_int("MAX_QUEUED_JOBS")
    )
    progress_interval: float = field(
        default_factory=lambda: _getenv_float("PROGRESS_INTERVAL", 1.0)
    )
    temp_dir: Optional[Path] = field(default_factory=lambda: _getenv_path("TEMP_DIR"))

    # ========== Retry Settings ==========
    max_retries: int = field(default_factory=lambda: _getenv_int("MAX_API_RETRIES", 3))
    retry_delay: float = field(default_factory=lambda: _getenv_float("API_RETRY_DELAY", 1.0))
    max_retry_delay: float = field(default_factory=lambda: _getenv_float("MAX_RETRY_DELAY", 30.0))

    # ========== Logging ==========
    log_level: str = field(default_factory=lambda: _getenv("LOG_LEVEL", "INFO").upper())
    log_file: Optional[Path] = field(default_factory=lambda: _getenv_path("LOG_FILE"))

    def __post_init__(self) -> None:
        """Reject values the components cannot work with."""
        if self.max_concurrent_jobs < 1:
            raise ValueError("MAX_CONCURRENT_JOBS must be at least 1")
        if self.max_queued_jobs is not None and self.max_queued_jobs < 0:
            raise ValueError("MAX_QUEUED_JOBS must be non-negative")
        if self.rate_limit_max_requests < 1:
            raise ValueError("RATE_LIMIT_MAX_REQUESTS must be at least 1")
        if self.rate_limit_window <= 0:
            raise ValueError("RATE_LIMIT_WINDOW must be positive")

    def __repr__(self) -> str:
        """Return repr with the API key redacted."""
        items = []
        for field_name in self.__dataclass_fields__:
            value = getattr(self, field_name)
            if field_name == "OPENAI_API_KEY" and value:
                items.append(f"{field_name}='***REDACTED***'")
            else:
                items.append(f"{field_name}={value!r}")
        return f"Config({', '.join(items)})"

    @property
    def is_test(self) -> bool:
        return self.environment.lower() == "test"

    @property
    def cache_timers_enabled(self) -> bool:
        """Periodic cache sweeps run everywhere except the test environment."""
        return not self.is_test

    def to_dict(self) -> Dict[str, Any]:
        """Non-secret settings for diagnostics output."""
        data = {name: getattr(self, name) for name in self.__dataclass_fields__}
        data["OPENAI_API_KEY"] = "***REDACTED***" if self.OPENAI_API_KEY else None
        return {k: str(v) if isinstance(v, Path) else v for k, v in data.items()}


_config_instance: Optional[Config] = None
_config_lock = threading.Lock()


def get_config() -> Config:
    """Get the process-wide config instance (thread-safe, created on first use).

    Intended for the command-line entry point only.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                load_environment()
                _config_instance = Config()
    return _config_instance


def reset_config() -> None:
    """Drop the cached instance so the next ``get_config`` re-reads the environment."""
    global _config_instance
    with _config_lock:
        _config_instance = None


from .factory import build_caches, build_client, build_orchestrator, build_rate_limiter  # noqa: E402

__all__ = [
    "Config",
    "build_caches",
    "build_client",
    "build_orchestrator",
    "build_rate_limiter",
    "get_config",
    "load_environment",
    "reset_config",
]
