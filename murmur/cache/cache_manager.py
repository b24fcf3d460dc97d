"""Generic in-memory cache with capacity bounds and TTL expiry.

The cache memoizes results of expensive remote calls keyed by content identity.
It provides:
- Capacity bound enforced before inserting a new key (LRU-style eviction)
- Per-entry time-to-live with lazy expiry on read
- Periodic background sweep of expired entries (optional)
- Content-addressed key derivation from file bytes or text + options
- Usage statistics for observability

Example:
    ```python
    cache: CacheManager[TranscriptionResult] = CacheManager(max_size=100, default_ttl=3600)

    key = cache.generate_content_key(await cache.generate_file_key(path), options)
    result = cache.get(key)
    if result is None:
        result = await transcribe(path)
        cache.set(key, result)

    cache.destroy()  # stop the sweep timer when the owner is torn down
    ```

Concurrency:
    The cache belongs to one event loop. The periodic sweep is a
    ``loop.call_later`` callback on that loop, so entries are only ever touched
    from the loop thread and no locking is needed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, TypeVar, Union

from .eviction import select_lru_victim
from .keys import hash_content, hash_file

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_SIZE = 100
DEFAULT_TTL = 24 * 60 * 60  # 24 hours
KEY_PREVIEW_LENGTH = 16


@dataclass
class CacheEntry(Generic[T]):
    """Cached value plus the metadata used for expiry and eviction.

    Attributes:
        data: Cached value
        timestamp: Creation or last update instant (clock seconds)
        ttl: Time-to-live in seconds
        access_count: Number of sets and successful gets, starts at 1
        last_accessed: Instant of the most recent set or successful get
    """

    data: T
    timestamp: float
    ttl: float
    access_count: int = 1
    last_accessed: float = 0.0

    def is_expired(self, now: float) -> bool:
        """Check whether the entry has outlived its TTL at ``now``."""
        return now > self.timestamp + self.ttl

    def touch(self, now: float) -> None:
        """Record an access."""
        self.access_count += 1
        self.last_accessed = now


@dataclass
class CacheEntrySummary:
    """Readable summary of one entry for statistics output."""

    key: str
    access_count: int
    age: float
    last_accessed: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "access_count": self.access_count,
            "age": self.age,
            "last_accessed": self.last_accessed,
        }


@dataclass
class CacheStats:
    """Snapshot of cache usage.

    ``hit_rate`` is the average number of accesses per live entry (sum of
    ``access_count`` divided by entry count). It approximates reuse; it is not
    a hit/miss ratio.
    """

    size: int
    max_size: int
    hit_rate: float
    entries: List[CacheEntrySummary] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": self.hit_rate,
            "entries": [entry.to_dict() for entry in self.entries],
        }


class CacheManager(Generic[T]):
    """Capacity-bounded, TTL-expiring key/value store."""

    def __init__(
        self,
        max_size: int = DEFAULT_MAX_SIZE,
        default_ttl: float = DEFAULT_TTL,
        cleanup_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        name: str = "cache",
    ) -> None:
        """Initialize the cache.

        Args:
            max_size: Maximum number of entries
            default_ttl: TTL in seconds used when ``set`` is called without one
            cleanup_interval: Seconds between background sweeps of expired
                entries; None disables the timer (call ``cleanup()`` manually).
                The sweep runs on the event loop; a cache built outside a
                running loop arms it on the first ``set()`` inside one
            clock: Time source returning seconds; injectable for tests
            name: Label used in log messages
        """
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        if default_ttl < 0:
            raise ValueError("default_ttl must be non-negative")

        self.max_size = max_size
        self.default_ttl = default_ttl
        self.cleanup_interval = cleanup_interval
        self.name = name
        self._clock = clock
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._destroyed = False

        self._schedule_cleanup()

        logger.debug(
            f"Initialized {name} with max_size={max_size}, default_ttl={default_ttl}s, "
            f"cleanup_interval={cleanup_interval}"
        )

    # ------------------------------------------------------------------ keys

    async def generate_file_key(self, file_path: Union[str, Path]) -> str:
        """Derive a key from the full byte content of a file.

        The file is read in the default executor so the event loop is not
        blocked by large recordings.

        Raises:
            CacheKeyError: If the file cannot be read
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, hash_file, Path(file_path))

    def generate_content_key(
        self, content: str, options: Optional[Mapping[str, Any]] = None
    ) -> str:
        """Derive a key from text content and the options applied to it."""
        return hash_content(content, options)

    # ------------------------------------------------------------ operations

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None

        now = self._clock()
        if entry.is_expired(now):
            del self._entries[key]
            logger.debug(f"{self.name}: expired {key[:KEY_PREVIEW_LENGTH]}")
            return None

        entry.touch(now)
        return entry.data

    def set(self, key: str, data: T, ttl: Optional[float] = None) -> None:
        """Store a value.

        Updating an existing key never evicts. Inserting a new key into a full
        cache evicts the least recently accessed entry first.

        Args:
            key: Cache key
            data: Value to store
            ttl: Time-to-live in seconds; None uses ``default_ttl``
        """
        effective_ttl = self.default_ttl if ttl is None else ttl
        self._schedule_cleanup()

        now = self._clock()
        existing = self._entries.get(key)
        if existing is not None:
            existing.data = data
            existing.timestamp = now
            existing.ttl = effective_ttl
            existing.touch(now)
            return

        if len(self._entries) >= self.max_size:
            self._evict_one()

        self._entries[key] = CacheEntry(
            data=data, timestamp=now, ttl=effective_ttl, access_count=1, last_accessed=now
        )

    def has(self, key: str) -> bool:
        """Equivalent to ``get(key) is not None``, including access side effects."""
        return self.get(key) is not None

    def delete(self, key: str) -> bool:
        """Remove one entry.

        Returns:
            True if the key existed
        """
        return self._entries.pop(key, None) is not None

    def clear(self) -> int:
        """Remove all entries.

        Returns:
            Number of entries removed
        """
        count = len(self._entries)
        self._entries.clear()
        return count

    def cleanup(self) -> int:
        """Remove every expired entry.

        Runs from the sweep timer, but is safe to call on demand.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]

        if expired:
            logger.debug(f"{self.name}: swept {len(expired)} expired entries")
        return len(expired)

    def get_stats(self) -> CacheStats:
        """Build a usage snapshot, entries sorted by access count descending."""
        now = self._clock()
        summaries = [
            CacheEntrySummary(
                key=key[:KEY_PREVIEW_LENGTH] + "...",
                access_count=entry.access_count,
                age=now - entry.timestamp,
                last_accessed=entry.last_accessed,
            )
            for key, entry in self._entries.items()
        ]

        total_accesses = sum(s.access_count for s in summaries)
        hit_rate = total_accesses / len(summaries) if summaries else 0.0
        summaries.sort(key=lambda s: s.access_count, reverse=True)

        return CacheStats(
            size=len(summaries), max_size=self.max_size, hit_rate=hit_rate, entries=summaries
        )

    def destroy(self) -> None:
        """Stop the sweep timer and drop all entries."""
        self._destroyed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self.clear()

    # --------------------------------------------------------------- helpers

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        """Expiry-aware membership test that does not count as an access."""
        entry = self._entries.get(key)  # type: ignore[arg-type]
        return entry is not None and not entry.is_expired(self._clock())

    def _evict_one(self) -> None:
        victim = select_lru_victim(self._entries)
        if victim is None:
            return
        del self._entries[victim]
        logger.debug(f"{self.name}: evicted {victim[:KEY_PREVIEW_LENGTH]} (capacity {self.max_size})")

    def _schedule_cleanup(self) -> None:
        if self._timer is not None or self._destroyed:
            return
        if self.cleanup_interval is None or self.cleanup_interval <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._timer = loop.call_later(self.cleanup_interval, self._run_scheduled_cleanup)

    def _run_scheduled_cleanup(self) -> None:
        self._timer = None
        try:
            self.cleanup()
        except Exception as e:
            logger.warning(f"{self.name}: scheduled cleanup failed: {e}")
        self._schedule_cleanup()
