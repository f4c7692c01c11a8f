"""
Cooperative cancellation for the label subscription.

An AbortSignal is passed explicitly into the stream consumer. Timers abort
it with a cause; every wait on the stream races against it.
"""

import asyncio
import logging
from collections.abc import Awaitable
from typing import Any, TypeVar

from .errors import AbortCause, SubscriptionAborted, describe_cause


T = TypeVar("T")


class AbortSignal:
    """A one-shot abort flag carrying a human-readable cause."""

    def __init__(self):
        self._event = asyncio.Event()
        self.cause: Any = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, cause: Any = "Aborted") -> None:
        # First cause wins
        if self._event.is_set():
            return
        logging.debug("Subscription aborted: %s", describe_cause(cause))
        self.cause = cause
        self._event.set()

    async def wait(self) -> Any:
        await self._event.wait()
        return self.cause

    def raise_if_aborted(self) -> None:
        if self.aborted:
            raise SubscriptionAborted(self.cause)

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Await `awaitable` unless the signal fires first.

        The losing awaitable is cancelled and awaited before returning, so
        its cleanup has finished by the time the caller sees the abort.

        Raises:
            SubscriptionAborted: If the signal fired before the awaitable finished
        """
        if self.aborted and asyncio.iscoroutine(awaitable):
            awaitable.close()
        self.raise_if_aborted()

        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        lost = False
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                lost = True

        # A task that completed despite the cancel still hands over its result
        if not lost or (not task.cancelled() and task.exception() is None):
            return task.result()
        raise SubscriptionAborted(self.cause)


class AbortTimer:
    """
    Scoped timer that aborts a signal when it fires.

    Used as a context manager; the pending timer is cancelled on every exit.
    """

    def __init__(self, seconds: float, signal: AbortSignal, cause: Any = AbortCause.TIMEOUT):
        self.seconds = seconds
        self.signal = signal
        self.cause = cause
        self._handle: asyncio.TimerHandle | None = None

    def rearm(self) -> None:
        self.cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.seconds, self.signal.abort, self.cause)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def armed(self) -> bool:
        return self._handle is not None

    def __enter__(self) -> "AbortTimer":
        self.rearm()
        return self

    def __exit__(self, *exc_info) -> None:
        self.cancel()
