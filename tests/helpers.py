"""Test doubles shared across the suite."""
from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from murmur.models import FormatResult, ProgressEvent, ProgressStage, TranscriptionResult
from murmur.orchestration import JobOrchestrator


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRemoteClient:
    """Scripted stand-in for OpenAIClient.

    Attributes:
        result: Result returned by ``transcribe``
        delay: Seconds ``transcribe`` sleeps before answering
        error: Exception raised by ``transcribe`` instead of returning
        calls: Paths passed to ``transcribe``
    """

    def __init__(
        self,
        result: Optional[TranscriptionResult] = None,
        delay: float = 0.0,
        error: Optional[BaseException] = None,
    ) -> None:
        self.result = result or TranscriptionResult(success=True, text="hello world", duration=1.5)
        self.delay = delay
        self.error = error
        self.calls: List[Path] = []
        self.active = 0
        self.max_active = 0
        self.cache_cleared = False
        self.closed = False
        self.seen_bytes: List[bytes] = []

    async def transcribe(self, audio_path: Any, options: Any = None) -> TranscriptionResult:
        path = Path(audio_path)
        self.calls.append(path)
        if path.exists():
            self.seen_bytes.append(path.read_bytes())
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return self.result
        finally:
            self.active -= 1

    async def format_text(self, text: str, options: Any = None) -> FormatResult:
        return FormatResult(success=True, formatted_text=f"# Note\n\n{text}", model="gpt-3.5-turbo")

    def get_cache_stats(self) -> Dict[str, Any]:
        return {"transcription": {"size": 0}, "formatting": {"size": 0}}

    def clear_caches(self) -> None:
        self.cache_cleared = True

    async def aclose(self) -> None:
        self.closed = True


class EventCollector:
    """Progress observer that records every event it sees."""

    def __init__(self) -> None:
        self.events: List[ProgressEvent] = []

    def __call__(self, event: ProgressEvent) -> None:
        self.events.append(event)

    def stages(self, job_id: Optional[str] = None) -> List[ProgressStage]:
        return [e.stage for e in self.events if job_id is None or e.job_id == job_id]

    def for_job(self, job_id: str) -> List[ProgressEvent]:
        return [e for e in self.events if e.job_id == job_id]


async def wait_until_registered(
    orchestrator: JobOrchestrator, job_id: str, timeout: float = 1.0
) -> None:
    """Yield to the loop until ``job_id`` shows up in the registry."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while job_id not in orchestrator.get_current_jobs():
        if loop.time() > deadline:
            raise AssertionError(f"job {job_id} never registered")
        await asyncio.sleep(0.001)
