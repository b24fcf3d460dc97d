"""Call contract between the job orchestrator and a remote service client."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Mapping, Protocol, Union, runtime_checkable

from ..models import FormatOptions, FormatResult, TranscriptionOptions, TranscriptionResult

TranscriptionOptionsLike = Union[TranscriptionOptions, Mapping[str, Any], None]
FormatOptionsLike = Union[FormatOptions, Mapping[str, Any], None]


@runtime_checkable
class RemoteClient(Protocol):
    """What the orchestrator needs from a remote-call collaborator.

    Implementations report failures as ``success=False`` results rather than
    raising, apply their own caching and rate limiting, and are safe to share
    between concurrently running jobs.
    """

    async def transcribe(
        self, audio_path: Union[str, Path], options: TranscriptionOptionsLike = None
    ) -> TranscriptionResult:
        """Transcribe an audio file."""
        ...

    async def format_text(self, text: str, options: FormatOptionsLike = None) -> FormatResult:
        """Turn raw transcript text into a structured note."""
        ...

    def get_cache_stats(self) -> Dict[str, Any]:
        """Per-cache statistics keyed by cache name."""
        ...

    def clear_caches(self) -> None:
        """Drop every cached result."""
        ...


def coerce_transcription_options(options: TranscriptionOptionsLike) -> TranscriptionOptions:
    """Accept a model, a plain mapping or None."""
    if options is None:
        return TranscriptionOptions()
    if isinstance(options, TranscriptionOptions):
        return options
    return TranscriptionOptions.model_validate(dict(options))


def coerce_format_options(options: FormatOptionsLike) -> FormatOptions:
    """Accept a model, a plain mapping or None."""
    if options is None:
        return FormatOptions()
    if isinstance(options, FormatOptions):
        return options
    return FormatOptions.model_validate(dict(options))
