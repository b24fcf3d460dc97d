"""Data models for the request orchestration layer.

This module provides the result types returned by jobs and remote calls, the
option models that shape those calls, and the progress event delivered to
observers.
"""

from .progress import ProgressEvent, ProgressStage
from .results import FormatOptions, FormatResult, TranscriptionOptions, TranscriptionResult

__all__ = [
    "FormatOptions",
    "FormatResult",
    "ProgressEvent",
    "ProgressStage",
    "TranscriptionOptions",
    "TranscriptionResult",
]
