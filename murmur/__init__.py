"""murmur: request orchestration for voice-memo transcription.

Provides a TTL/LRU result cache, a sliding-window rate limiter, an OpenAI
client that applies both, and an asynchronous job orchestrator with
cooperative cancellation and progress streaming.
"""

__version__ = "1.0.0"

from .cache import CacheManager, CacheStats  # noqa: E402
from .errors import MurmurError  # noqa: E402
from .models import (  # noqa: E402
    FormatOptions,
    FormatResult,
    ProgressEvent,
    ProgressStage,
    TranscriptionOptions,
    TranscriptionResult,
)
from .orchestration import CancellationToken, JobOrchestrator, ProgressBroadcaster  # noqa: E402
from .providers import OpenAIClient, RemoteClient  # noqa: E402
from .utils.rate_limit import RateLimiter  # noqa: E402

__all__ = [
    "CacheManager",
    "CacheStats",
    "CancellationToken",
    "FormatOptions",
    "FormatResult",
    "JobOrchestrator",
    "MurmurError",
    "OpenAIClient",
    "ProgressBroadcaster",
    "ProgressEvent",
    "ProgressStage",
    "RateLimiter",
    "RemoteClient",
    "TranscriptionOptions",
    "TranscriptionResult",
    "__version__",
]
