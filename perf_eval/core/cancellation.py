"""Cooperative cancellation shared by every virtual user of a run."""

import asyncio
import logging
from typing import Awaitable, Optional, TypeVar

from ..utils.errors import RequestAbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal.

    ``cancel()`` may be called from any coroutine on the run's event loop
    (e.g. ``stop_test``). Waiters are woken and in-flight work started with
    :meth:`run` is aborted with :class:`RequestAbortedError`.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    async def sleep(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; return False if cancelled first."""
        if self.cancelled:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first.

        Raises:
            RequestAbortedError: the token was cancelled before the awaitable
                finished; the underlying task is cancelled.
        """
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise RequestAbortedError(self.reason or "cancelled")

        work = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({work, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            raise
        finally:
            if not waiter.done():
                waiter.cancel()

        if work.done():
            return work.result()

        work.cancel()
        try:
            await work
        except asyncio.CancelledError:
            pass
        except Exception as e:
            # The abort wins over a failure raised during teardown.
            logger.debug(f"Aborted request raised during teardown: {e!r}")
        raise RequestAbortedError(self.reason or "cancelled")
