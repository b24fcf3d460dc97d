"""Progress event model shared by the orchestrator and its observers."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ProgressStage(str, Enum):
    """Lifecycle stage of a job."""

    PREPARING = "preparing"
    TRANSCRIBING = "transcribing"
    FORMATTING = "formatting"
    SAVING = "saving"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (ProgressStage.COMPLETE, ProgressStage.ERROR)


@dataclass(frozen=True)
class ProgressEvent:
    """A single progress notification for one job.

    Attributes:
        job_id: Job the event belongs to
        stage: Lifecycle stage
        progress: Percentage in [0, 100]
        message: Human-readable status line
        details: Optional stage-specific data
    """

    job_id: str
    stage: ProgressStage
    progress: int
    message: str
    details: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress must be within [0, 100], got {self.progress}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape ``{job_id, stage, progress, message, details?}``."""
        data: Dict[str, Any] = {
            "job_id": self.job_id,
            "stage": self.stage.value,
            "progress": self.progress,
            "message": self.message,
        }
        if self.details is not None:
            data["details"] = dict(self.details)
        return data
