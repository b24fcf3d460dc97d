"""Delivery of progress events to registered observers.

Two delivery styles are supported:

    - Callbacks registered with :meth:`ProgressBroadcaster.subscribe`, either
      for every job or for a single job id. A callback that raises is logged
      and skipped; it never affects other observers or the job itself.
    - Async iterators from :meth:`ProgressBroadcaster.stream`, one queue per
      iterator, ending when the job's streams are closed.

Example:
    ```python
    unsubscribe = broadcaster.subscribe(lambda event: print(event.to_dict()))

    async for event in broadcaster.stream("job-1"):
        render(event)

    unsubscribe()
    ```
"""
from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

from ..models import ProgressEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], Any]

_END_OF_STREAM = object()


class ProgressBroadcaster:
    """Fans progress events out to callbacks and per-job streams."""

    def __init__(self) -> None:
        self._subscribers: Dict[int, Tuple[Optional[str], ProgressCallback]] = {}
        self._streams: Dict[str, List["asyncio.Queue[Any]"]] = {}
        self._ids = itertools.count()

    def subscribe(
        self, callback: ProgressCallback, job_id: Optional[str] = None
    ) -> Callable[[], None]:
        """Register ``callback(event)``.

        Args:
            callback: Called with every matching event; may be a coroutine
                function, in which case the coroutine is scheduled
            job_id: Only deliver events of this job; None for all jobs

        Returns:
            Function that removes the registration (safe to call twice)
        """
        token = next(self._ids)
        self._subscribers[token] = (job_id, callback)

        def unsubscribe() -> None:
            self._subscribers.pop(token, None)

        return unsubscribe

    def stream(self, job_id: str) -> AsyncIterator[ProgressEvent]:
        """Async iterator over the events of ``job_id``.

        The queue is registered immediately, so events emitted between this
        call and the first iteration are not lost. Iteration ends when
        :meth:`close_job` is called for the job.
        """
        queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._streams.setdefault(job_id, []).append(queue)
        return self._drain(job_id, queue)

    async def _drain(self, job_id: str, queue: "asyncio.Queue[Any]") -> AsyncIterator[ProgressEvent]:
        try:
            while True:
                item = await queue.get()
                if item is _END_OF_STREAM:
                    return
                yield item
        finally:
            queues = self._streams.get(job_id)
            if queues and queue in queues:
                queues.remove(queue)
                if not queues:
                    del self._streams[job_id]

    def emit(self, event: ProgressEvent) -> None:
        """Deliver ``event`` to matching callbacks and open streams."""
        for job_filter, callback in list(self._subscribers.values()):
            if job_filter is not None and job_filter != event.job_id:
                continue
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    asyncio.ensure_future(result).add_done_callback(self._log_async_failure)
            except Exception as e:
                logger.warning(f"Progress observer failed for job {event.job_id}: {e}")

        for queue in self._streams.get(event.job_id, ()):
            queue.put_nowait(event)

    def close_job(self, job_id: str) -> None:
        """End every open stream of ``job_id``."""
        for queue in self._streams.pop(job_id, []):
            queue.put_nowait(_END_OF_STREAM)

    def close_all(self) -> None:
        for job_id in list(self._streams):
            self.close_job(job_id)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @staticmethod
    def _log_async_failure(future: "asyncio.Future[Any]") -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"Async progress observer failed: {error}")
