"""Cooperative cancellation for in-flight jobs."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from ..errors import CANCELLED_MESSAGE, JobCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _discard_result(task: "asyncio.Future[Any]") -> None:
    # Retrieve the outcome of an abandoned task so it is not reported as unhandled.
    if not task.cancelled():
        task.exception()


class CancellationToken:
    """One-shot cancellation signal backed by an ``asyncio.Event``.

    The token does not interrupt anything by itself. Work that should stop on
    cancellation is run through :meth:`race`, which returns the work's result
    or raises :class:`JobCancelledError` as soon as the token fires, whichever
    comes first.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = CANCELLED_MESSAGE) -> bool:
        """Fire the token.

        Returns:
            False if the token had already fired
        """
        if self._event.is_set():
            return False
        self.reason = reason
        self._event.set()
        return True

    async def wait(self) -> None:
        """Block until the token fires."""
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise JobCancelledError()

    async def race(self, work: Awaitable[T]) -> T:
        """Await ``work`` unless the token fires first.

        If the token wins, the work is cancelled and its eventual outcome is
        discarded. If both settle in the same step, cancellation wins.

        Raises:
            JobCancelledError: The token fired before the work settled
        """
        if self._event.is_set():
            if asyncio.iscoroutine(work):
                work.close()
            raise JobCancelledError()

        task = asyncio.ensure_future(work)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if self._event.is_set():
            task.cancel()
            task.add_done_callback(_discard_result)
            raise JobCancelledError()

        waiter.cancel()
        return task.result()
