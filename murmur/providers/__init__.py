"""Remote-call collaborators."""

from .base import RemoteClient, coerce_format_options, coerce_transcription_options
from .openai_client import DEFAULT_FORMAT_PROMPT, OpenAIClient, build_format_messages

__all__ = [
    "DEFAULT_FORMAT_PROMPT",
    "OpenAIClient",
    "RemoteClient",
    "build_format_messages",
    "coerce_format_options",
    "coerce_transcription_options",
]
