"""Per-call abort signals and the helpers that race work against them."""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional, TypeVar

from .errors import ProviderAbortedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

REASON_ABORTED = "aborted"
REASON_TIMEOUT = "timeout"


class AbortSignal:
    """One-shot cancellation signal passed down with a top-level call.

    Aborting is idempotent: the first reason wins and listeners fire once.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._listeners: list[Callable[[str], Any]] = []
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def abort(self, reason: str = REASON_ABORTED) -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        for listener in list(self._listeners):
            listener(reason)

    async def wait(self) -> str:
        await self._event.wait()
        return self.reason or REASON_ABORTED

    def add_listener(self, listener: Callable[[str], Any]) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: Callable[[str], Any]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass


async def run_abortable(awaitable: Awaitable[T], signal: AbortSignal | None) -> T:
    """Await *awaitable* unless *signal* fires first.

    When the signal wins, the in-flight task is cancelled and awaited so it
    settles, then ``ProviderAbortedError`` is raised.
    """
    if signal is None:
        return await awaitable

    task = asyncio.ensure_future(awaitable)
    if signal.aborted:
        task.cancel()
        await _settle(task)
        raise ProviderAbortedError(signal.reason or REASON_ABORTED)

    waiter = asyncio.ensure_future(signal.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        await _settle(task)
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await _settle(task)
    raise ProviderAbortedError(signal.reason or REASON_ABORTED)


async def _settle(task: asyncio.Future) -> None:
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception:
        logger.debug("Aborted task raised while settling", exc_info=True)


@contextmanager
def timeout_signal(seconds: float, parent: AbortSignal | None = None) -> Iterator[AbortSignal]:
    """Yield a child signal that aborts after *seconds* or when *parent* aborts.

    The timer handle and the parent listener are always released on exit.
    """
    signal = AbortSignal()
    loop = asyncio.get_running_loop()
    handle = loop.call_later(seconds, signal.abort, REASON_TIMEOUT)

    if parent is not None:
        if parent.aborted:
            signal.abort(parent.reason or REASON_ABORTED)
        else:
            parent.add_listener(signal.abort)
    try:
        yield signal
    finally:
        handle.cancel()
        if parent is not None:
            parent.remove_listener(signal.abort)
