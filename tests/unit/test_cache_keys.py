"""Unit tests for cache key derivation and LRU victim selection."""
from __future__ import annotations

import hashlib
from pathlib import Path
from types import SimpleNamespace

import pytest

from murmur.cache import hash_content, hash_file, select_lru_victim
from murmur.errors import CacheKeyError
from murmur.models import TranscriptionOptions


class TestHashFile:
    """Full-content file hashing."""

    def test_matches_sha256_of_bytes(self, tmp_path: Path):
        path = tmp_path / "a.bin"
        data = b"x" * 200_000
        path.write_bytes(data)

        assert hash_file(path, chunk_size=1024) == hashlib.sha256(data).hexdigest()

    def test_unreadable_path_raises_cache_key_error(self, tmp_path: Path):
        with pytest.raises(CacheKeyError):
            hash_file(tmp_path)


class TestHashContent:
    """Text + options hashing."""

    def test_deterministic_and_compact(self):
        expected = hashlib.sha256(
            b'{"content":"hi","options":{"language":"en"}}'
        ).hexdigest()

        assert hash_content("hi", {"language": "en"}) == expected

    def test_unset_model_fields_do_not_change_key(self):
        assert hash_content("k", TranscriptionOptions().to_key_dict()) == hash_content("k", {})
        assert hash_content(
            "k", TranscriptionOptions(language="ja").to_key_dict()
        ) == hash_content("k", {"language": "ja"})

    def test_non_ascii_content(self):
        assert hash_content("こんにちは") != hash_content("こんばんは")


class TestSelectLruVictim:
    """Victim selection."""

    def test_empty(self):
        assert select_lru_victim({}) is None

    def test_oldest_access_wins(self):
        entries = {
            "a": SimpleNamespace(last_accessed=5.0),
            "b": SimpleNamespace(last_accessed=1.0),
            "c": SimpleNamespace(last_accessed=3.0),
        }

        assert select_lru_victim(entries) == "b"

    def test_tie_goes_to_first_inserted(self):
        entries = {
            "x": SimpleNamespace(last_accessed=2.0),
            "y": SimpleNamespace(last_accessed=1.0),
            "z": SimpleNamespace(last_accessed=1.0),
        }

        assert select_lru_victim(entries) == "y"
