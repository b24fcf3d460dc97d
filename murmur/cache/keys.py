"""Content-addressed cache key derivation.

Keys are 64-character lowercase SHA-256 hex digests. The same audio bytes or
the same text + options always map to the same key, regardless of file path
or calling context, while any change in content or options yields a new key.
"""
from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from ..errors import CacheKeyError

CHUNK_SIZE = 64 * 1024


def hash_file(file_path: Union[str, Path], chunk_size: int = CHUNK_SIZE) -> str:
    """Hash the full byte content of a file.

    Args:
        file_path: File to hash
        chunk_size: Read size in bytes

    Returns:
        SHA-256 hex digest of the file content

    Raises:
        CacheKeyError: If the file cannot be opened or read
    """
    sha256 = hashlib.sha256()
    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(chunk_size):
                sha256.update(chunk)
    except OSError as e:
        raise CacheKeyError(f"Failed to generate file hash: {e}") from e

    return sha256.hexdigest()


def hash_content(content: str, options: Optional[Mapping[str, Any]] = None) -> str:
    """Hash a ``{"content", "options"}`` pair.

    Serialization sorts keys and uses compact separators so that two option
    mappings that are equal by value hash identically.

    Args:
        content: Text content (or another key) to hash
        options: JSON-serializable options that influence the cached result

    Returns:
        SHA-256 hex digest of the serialized pair
    """
    combined = json.dumps(
        {"content": content, "options": dict(options) if options is not None else None},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
        default=str,
    )
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()
