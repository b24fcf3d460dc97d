"""Asynchronous job orchestration for transcription requests.

A job is one transcription of one recording. The orchestrator:
- registers each job with a cancellation token and enforces unique job ids
- caps how many jobs talk to the remote client at once (optionally bounding
  how many may wait for a slot)
- emits progress events through a ProgressBroadcaster, simulating steady
  progress while the remote call is outstanding
- races the remote call against the job's token so cancellation takes effect
  immediately
- guarantees a terminal ``complete`` or ``error`` event and deregistration on
  every path

Job lifecycle:
    preparing (5) -> [slot wait] -> preparing (10) -> transcribing (15..75)
    -> transcribing (80) -> complete (100) | error (0)
"""
from __future__ import annotations

import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Union

from ..errors import InputNotFoundError, JobCancelledError, JobRejectedError, MurmurError
from ..models import ProgressEvent, ProgressStage, TranscriptionResult
from ..providers.base import RemoteClient, TranscriptionOptionsLike
from ..utils import scratch
from .cancellation import CancellationToken
from .progress import ProgressBroadcaster, ProgressCallback

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1024 * 1024
SECONDS_PER_MB = 3
SIMULATION_START = 15
SIMULATION_CEILING = 75


def estimate_transcription_time(file_size: int) -> int:
    """Rough Whisper turnaround: about 3 seconds per MB, at least 1 second."""
    return max(1, math.ceil(file_size / BYTES_PER_MB * SECONDS_PER_MB))


def simulated_progress(elapsed: float, estimated_time: float) -> int:
    """Progress percentage for ``elapsed`` seconds into a call.

    Follows a sigmoid from SIMULATION_START toward SIMULATION_CEILING, reaching
    the midpoint at ``estimated_time / 2`` and never exceeding the ceiling.
    """
    x = (elapsed / max(estimated_time, 1e-6)) * 12 - 6
    sigmoid = 1 / (1 + math.exp(-x))
    value = SIMULATION_START + sigmoid * (SIMULATION_CEILING - SIMULATION_START)
    return min(SIMULATION_CEILING, int(value))


class JobOrchestrator:
    """Runs transcription jobs against a remote client.

    Example:
        ```python
        async with JobOrchestrator(client, max_concurrent_jobs=2) as orchestrator:
            orchestrator.subscribe(lambda event: print(event.to_dict()))
            result = await orchestrator.process_job("memo.m4a", {"language": "en"})
        ```
    """

    def __init__(
        self,
        client: RemoteClient,
        temp_dir: Optional[Union[str, Path]] = None,
        max_concurrent_jobs: int = 3,
        max_queued_jobs: Optional[int] = None,
        progress_interval: float = 1.0,
        broadcaster: Optional[ProgressBroadcaster] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            client: Remote-call collaborator (see ``RemoteClient``)
            temp_dir: Scratch directory for blob payloads; created eagerly.
                Defaults to a private ``session-*`` directory under
                ``<system tmp>/murmur-audio-processor``
            max_concurrent_jobs: Jobs allowed to call the client at once
            max_queued_jobs: Jobs allowed to wait for a slot; None is unbounded
            progress_interval: Seconds between simulated progress events
            broadcaster: Progress fan-out; a private one is created if omitted
        """
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        if max_queued_jobs is not None and max_queued_jobs < 0:
            raise ValueError("max_queued_jobs must be non-negative")
        if progress_interval <= 0:
            raise ValueError("progress_interval must be positive")

        self.client = client
        if temp_dir is not None:
            self.temp_dir = scratch.ensure_directory(temp_dir)
        else:
            self.temp_dir = scratch.create_instance_dir()
        self.max_concurrent_jobs = max_concurrent_jobs
        self.max_queued_jobs = max_queued_jobs
        self.progress_interval = progress_interval
        self.progress = broadcaster or ProgressBroadcaster()

        self._jobs: Dict[str, CancellationToken] = {}
        self._unsettled: Dict[CancellationToken, asyncio.Event] = {}
        self._slots: Optional[asyncio.Semaphore] = None
        self._active = 0
        self._waiting = 0

    async def __aenter__(self) -> "JobOrchestrator":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.cleanup()

    # ------------------------------------------------------------------ jobs

    async def process_job(
        self,
        input_path: Union[str, Path],
        options: TranscriptionOptionsLike = None,
        job_id: Optional[str] = None,
    ) -> TranscriptionResult:
        """Transcribe one recording, reporting progress along the way.

        Args:
            input_path: Path to the recording
            options: Transcription options forwarded to the client
            job_id: Caller-chosen id; defaults to ``job-<epoch ms>``

        Returns:
            The client's result on success, otherwise
            ``TranscriptionResult(success=False, error=...)``
        """
        job_id = job_id or self._generate_job_id("job")

        try:
            token = self._register(job_id)
        except JobRejectedError as e:
            logger.warning(f"Job {job_id} rejected: {e.message}")
            return TranscriptionResult.failure(e.message)

        try:
            return await self._run_job(job_id, Path(input_path), options, token)
        finally:
            self._deregister(job_id, token)

    async def process_job_from_blob(
        self,
        data: Any,
        options: TranscriptionOptionsLike = None,
        job_id: Optional[str] = None,
    ) -> TranscriptionResult:
        """Transcribe an in-memory recording.

        The job is registered before the payload is written, so it can be
        cancelled while the private ``temp-<job_id>-*.webm`` file in
        ``temp_dir`` is still being prepared. The file is removed when the
        job settles.

        Args:
            data: Bytes-like payload or an object with ``read()``
            options: Transcription options forwarded to the client
            job_id: Caller-chosen id; defaults to ``blob-<epoch ms>``
        """
        job_id = job_id or self._generate_job_id("blob")

        try:
            token = self._register(job_id)
        except JobRejectedError as e:
            logger.warning(f"Job {job_id} rejected: {e.message}")
            return TranscriptionResult.failure(e.message)

        scratch_path: Optional[Path] = None
        try:
            try:
                payload = scratch.payload_to_bytes(data)
                loop = asyncio.get_running_loop()
                scratch_path = await loop.run_in_executor(
                    None,
                    lambda: scratch.write_scratch_file(payload, self.temp_dir, prefix=f"temp-{job_id}-"),
                )
            except (TypeError, OSError) as e:
                message = f"Failed to prepare audio data: {e}"
                logger.error(f"Job {job_id}: {message}")
                self._emit_failure(job_id, message)
                return TranscriptionResult.failure(message)

            return await self._run_job(job_id, scratch_path, options, token)
        finally:
            if scratch_path is not None:
                scratch.remove_scratch_file(scratch_path)
            self._deregister(job_id, token)

    def cancel_job(self, job_id: str) -> bool:
        """Cancel a registered job.

        The job's token fires, a cancellation ``error`` event is emitted and
        the job is deregistered. The job's own coroutine then finishes with
        ``"Processing aborted by user"``.

        Returns:
            False if no job with that id is registered
        """
        token = self._jobs.get(job_id)
        if token is None:
            return False

        token.cancel()
        del self._jobs[job_id]
        self._emit(
            job_id,
            ProgressStage.ERROR,
            0,
            "Job cancelled by user",
            {"job_id": job_id, "cancelled": True},
        )
        logger.info(f"Job {job_id} cancelled")
        return True

    def get_current_jobs(self) -> List[str]:
        """Registered job ids in registration order."""
        return list(self._jobs)

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.client.get_cache_stats()

    def clear_caches(self) -> None:
        self.client.clear_caches()

    async def cleanup(self) -> None:
        """Cancel every registered job and remove the scratch directory.

        Returns once every cancelled job has settled, so no job still holds a
        scratch file when the directory goes.
        """
        unsettled = list(self._unsettled.values())

        for job_id in list(self._jobs):
            self.cancel_job(job_id)
            logger.info(f"Cancelled job {job_id} during cleanup")

        if unsettled:
            await asyncio.gather(*(settled.wait() for settled in unsettled))

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, scratch.remove_scratch_dir, self.temp_dir)

    # ------------------------------------------------------------- observers

    def subscribe(
        self, callback: ProgressCallback, job_id: Optional[str] = None
    ) -> Callable[[], None]:
        """Register a progress observer; returns its unsubscribe function."""
        return self.progress.subscribe(callback, job_id)

    def stream(self, job_id: str) -> AsyncIterator[ProgressEvent]:
        """Async iterator of ``job_id``'s events, ending when the job finishes.

        The stream may be opened before the job starts. A stream opened for an
        id that never runs stays open until closed with ``aclose()``.
        """
        return self.progress.stream(job_id)

    # --------------------------------------------------------------- helpers

    @staticmethod
    def _generate_job_id(prefix: str) -> str:
        return f"{prefix}-{int(time.time() * 1000)}"

    def _admit(self, job_id: str) -> None:
        if job_id in self._jobs:
            raise JobRejectedError(f"Job {job_id} is already running")
        if (
            self.max_queued_jobs is not None
            and self._active + self._waiting >= self.max_concurrent_jobs
            and self._waiting >= self.max_queued_jobs
        ):
            raise JobRejectedError("Too many pending jobs")

    def _register(self, job_id: str) -> CancellationToken:
        self._admit(job_id)
        token = CancellationToken()
        self._jobs[job_id] = token
        self._unsettled[token] = asyncio.Event()
        return token

    def _deregister(self, job_id: str, token: CancellationToken) -> None:
        if self._jobs.get(job_id) is token:
            del self._jobs[job_id]
        if job_id not in self._jobs:
            self.progress.close_job(job_id)
        settled = self._unsettled.pop(token, None)
        if settled is not None:
            settled.set()

    async def _run_job(
        self,
        job_id: str,
        path: Path,
        options: TranscriptionOptionsLike,
        token: CancellationToken,
    ) -> TranscriptionResult:
        holds_slot = False
        logger.info(f"Starting job {job_id}: {path}")

        try:
            token.raise_if_cancelled()
            self._emit(
                job_id,
                ProgressStage.PREPARING,
                5,
                "Preparing audio file...",
                {"job_id": job_id, "file_path": str(path)},
            )

            await self._acquire_slot(token)
            holds_slot = True

            file_size = await self._stat_input(path)
            token.raise_if_cancelled()
            self._emit(
                job_id,
                ProgressStage.PREPARING,
                10,
                f"Audio file ready ({file_size / BYTES_PER_MB:.1f}MB)",
                {"job_id": job_id, "file_size": file_size},
            )

            estimated_time = estimate_transcription_time(file_size)
            self._emit(
                job_id,
                ProgressStage.TRANSCRIBING,
                15,
                "Transcribing audio...",
                {"job_id": job_id, "estimated_time": estimated_time},
            )

            result = await self._transcribe_with_progress(
                job_id, path, options, token, estimated_time
            )
            self._emit(
                job_id,
                ProgressStage.TRANSCRIBING,
                80,
                "Transcription received",
                {"job_id": job_id, "text_length": len(result.text or "")},
            )

            if not result.success:
                raise MurmurError(result.error or "Transcription failed")

            self._emit(
                job_id,
                ProgressStage.COMPLETE,
                100,
                "Processing complete",
                {"job_id": job_id, "text_length": len(result.text or ""), "duration": result.duration},
            )
            logger.info(f"Job {job_id} completed ({len(result.text or '')} chars)")
            return result

        except MurmurError as e:
            if isinstance(e, JobCancelledError):
                logger.info(f"Job {job_id} aborted")
            else:
                logger.error(f"Job {job_id} failed: {e.message}")
            self._emit_failure(job_id, e.message)
            return TranscriptionResult.failure(e.message)

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.exception(f"Unexpected error in job {job_id}")
            self._emit_failure(job_id, message)
            return TranscriptionResult.failure(message)

        finally:
            if holds_slot:
                self._release_slot()

    def _get_slots(self) -> asyncio.Semaphore:
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.max_concurrent_jobs)
        return self._slots

    async def _acquire_slot(self, token: CancellationToken) -> None:
        slots = self._get_slots()
        self._waiting += 1
        acquire = asyncio.ensure_future(slots.acquire())
        try:
            await token.race(acquire)
        except JobCancelledError:
            if acquire.done() and not acquire.cancelled() and acquire.exception() is None:
                slots.release()
            raise
        finally:
            self._waiting -= 1
        self._active += 1

    def _release_slot(self) -> None:
        self._active -= 1
        self._get_slots().release()

    async def _stat_input(self, path: Path) -> int:
        loop = asyncio.get_running_loop()
        try:
            stat = await loop.run_in_executor(None, path.stat)
        except FileNotFoundError as e:
            raise InputNotFoundError(path) from e
        return stat.st_size

    async def _transcribe_with_progress(
        self,
        job_id: str,
        path: Path,
        options: TranscriptionOptionsLike,
        token: CancellationToken,
        estimated_time: float,
    ) -> TranscriptionResult:
        simulation = asyncio.ensure_future(self._simulate_progress(job_id, estimated_time))
        try:
            return await token.race(self.client.transcribe(path, options))
        finally:
            simulation.cancel()

    async def _simulate_progress(self, job_id: str, estimated_time: float) -> None:
        loop = asyncio.get_running_loop()
        start = loop.time()
        last = SIMULATION_START

        while last < SIMULATION_CEILING:
            await asyncio.sleep(self.progress_interval)
            value = simulated_progress(loop.time() - start, estimated_time)
            if value > last:
                last = value
                self._emit(
                    job_id,
                    ProgressStage.TRANSCRIBING,
                    value,
                    "Analyzing audio...",
                    {"job_id": job_id},
                )

    def _emit(
        self,
        job_id: str,
        stage: ProgressStage,
        progress: int,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.progress.emit(ProgressEvent(job_id, stage, progress, message, details))

    def _emit_failure(self, job_id: str, error: str) -> None:
        self._emit(
            job_id,
            ProgressStage.ERROR,
            0,
            f"Processing error: {error}",
            {"job_id": job_id, "error": error},
        )
