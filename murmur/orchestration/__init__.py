"""Job orchestration: registration, cancellation and progress delivery."""

from .cancellation import CancellationToken
from .job_orchestrator import JobOrchestrator, estimate_transcription_time, simulated_progress
from .progress import ProgressBroadcaster, ProgressCallback

__all__ = [
    "CancellationToken",
    "JobOrchestrator",
    "ProgressBroadcaster",
    "ProgressCallback",
    "estimate_transcription_time",
    "simulated_progress",
]
