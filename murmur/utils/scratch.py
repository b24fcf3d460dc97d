"""Scratch files for in-memory audio payloads.

Recorded audio arrives as a blob; the transcription call needs a path. These
helpers materialise the blob into a private scratch directory with:
- Restrictive file permissions (0600)
- Unpredictable filenames via mkstemp
- Best-effort removal that never masks the job's own outcome
"""
from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from pathlib import Path
from typing import Any, Union

logger = logging.getLogger(__name__)

SCRATCH_DIR_NAME = "murmur-audio-processor"
DEFAULT_SUFFIX = ".webm"
INSTANCE_DIR_PREFIX = "session-"


def default_scratch_dir() -> Path:
    """``<system tmp>/murmur-audio-processor``."""
    return Path(tempfile.gettempdir()) / SCRATCH_DIR_NAME


def create_instance_dir(root: Union[str, Path, None] = None) -> Path:
    """Create a private ``session-*`` directory under ``root``.

    Each orchestrator gets its own directory so removing it never touches
    another process's scratch files. ``root`` defaults to
    :func:`default_scratch_dir`.
    """
    base = ensure_directory(root if root is not None else default_scratch_dir())
    return Path(tempfile.mkdtemp(prefix=INSTANCE_DIR_PREFIX, dir=str(base)))


def ensure_directory(directory: Union[str, Path], permissions: int = 0o700) -> Path:
    """Create ``directory`` (and parents) if needed and return it as a Path."""
    path = Path(directory)
    if not path.exists():
        path.mkdir(parents=True, exist_ok=True)
        try:
            path.chmod(permissions)
        except OSError as e:
            logger.warning(f"Failed to set permissions on {path}: {e}")
    return path


def payload_to_bytes(payload: Any) -> bytes:
    """Coerce a blob payload into bytes.

    Accepts bytes-like objects and file-like objects exposing ``read()``.

    Raises:
        TypeError: If the payload is neither
    """
    if isinstance(payload, (bytes, bytearray, memoryview)):
        return bytes(payload)

    read = getattr(payload, "read", None)
    if callable(read):
        data = read()
        if isinstance(data, (bytes, bytearray, memoryview)):
            return bytes(data)
        raise TypeError(f"read() returned {type(data).__name__}, expected bytes")

    raise TypeError(f"Unsupported audio payload type: {type(payload).__name__}")


def write_scratch_file(
    data: bytes,
    directory: Union[str, Path],
    prefix: str = "temp-",
    suffix: str = DEFAULT_SUFFIX,
    permissions: int = 0o600,
) -> Path:
    """Write ``data`` to a new scratch file.

    The directory is recreated if it has been removed since startup.

    Args:
        data: Bytes to write
        directory: Scratch directory
        prefix: Filename prefix (e.g. ``temp-<job_id>-``)
        suffix: Filename suffix
        permissions: File permissions in octal (default 0o600)

    Returns:
        Path to the written file

    Raises:
        OSError: If the file cannot be created or written
    """
    target_dir = ensure_directory(directory)
    fd, path_str = tempfile.mkstemp(suffix=suffix, prefix=prefix, dir=str(target_dir))
    path = Path(path_str)

    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        path.chmod(permissions)
    except OSError:
        remove_scratch_file(path)
        raise

    logger.debug(f"Wrote scratch file {path} ({len(data)} bytes)")
    return path


def remove_scratch_file(path: Union[str, Path]) -> None:
    """Delete a scratch file, logging instead of raising on failure."""
    try:
        Path(path).unlink()
        logger.debug(f"Cleaned up scratch file: {path}")
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to cleanup scratch file {path}: {e}")


def remove_scratch_dir(directory: Union[str, Path]) -> None:
    """Delete the scratch directory and everything in it."""
    path = Path(directory)
    try:
        if path.exists():
            shutil.rmtree(path)
            logger.debug(f"Cleaned up scratch directory: {path}")
    except OSError as e:
        logger.warning(f"Failed to cleanup scratch directory {path}: {e}")


def has_private_permissions(file_path: Path) -> bool:
    """Check that group and others have no access to ``file_path``."""
    if not file_path.exists():
        return False
    mode = file_path.stat().st_mode
    return (mode & (stat.S_IRWXG | stat.S_IRWXO)) == 0
