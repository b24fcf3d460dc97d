"""Caching layer for remote-call results.

Components:
    - CacheManager: generic capacity-bounded, TTL-expiring store
    - CacheEntry: cached value plus access metadata
    - CacheStats: usage snapshot returned by ``CacheManager.get_stats``
    - hash_file / hash_content: content-addressed key derivation

Usage::

    from murmur.cache import CacheManager

    cache = CacheManager(max_size=50, default_ttl=24 * 3600)
    key = cache.generate_content_key(text, {"model": "gpt-3.5-turbo"})
    if (result := cache.get(key)) is None:
        result = await format_text(text)
        cache.set(key, result)
"""

from .cache_manager import CacheEntry, CacheEntrySummary, CacheManager, CacheStats
from .eviction import select_lru_victim
from .keys import hash_content, hash_file

__all__ = [
    "CacheEntry",
    "CacheEntrySummary",
    "CacheManager",
    "CacheStats",
    "hash_content",
    "hash_file",
    "select_lru_victim",
]
