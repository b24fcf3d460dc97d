"""Eviction victim selection for the in-memory cache.

The cache stores entries in an insertion-ordered dict, so a linear scan that
keeps the first minimum breaks ``last_accessed`` ties by insertion order: the
earliest inserted entry among equally stale ones is evicted. That keeps the
choice deterministic within a run.
"""
from __future__ import annotations

from typing import Any, Mapping, Optional


def select_lru_victim(entries: Mapping[str, Any]) -> Optional[str]:
    """Select the least recently accessed entry.

    Args:
        entries: Mapping of key to entry; entries expose ``last_accessed``

    Returns:
        Key of the entry with the smallest ``last_accessed``, or None if empty
    """
    victim: Optional[str] = None
    oldest = float("inf")

    for key, entry in entries.items():
        if entry.last_accessed < oldest:
            oldest = entry.last_accessed
            victim = key

    return victim
