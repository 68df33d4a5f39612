"""
Live Query Subscription

DESIGN DECISION: A live query is an explicit handle, not a bare callback.
The backend listener runs on its own thread and pushes whole snapshots;
consumers either iterate the handle asynchronously or read `latest` from
synchronous code (the Streamlit script reruns). Closing the handle tears
down the backend listener exactly once.

Only the newest snapshot matters: a slow consumer skips intermediate
snapshots instead of queueing them.
"""

import asyncio
import threading
from typing import Callable, Generic, Optional, TypeVar

from household_ledger.errors import LedgerError


T = TypeVar("T")


class Subscription(Generic[T]):
    """
    Handle on a live query.

    Usage:
        async with store.watch_collection(path, "createdAt") as sub:
            async for snapshot in sub:
                render(snapshot)

        sub = store.watch_collection(path, "createdAt")
        rows = sub.latest or []
        sub.close()
    """

    def __init__(self, unsubscribe: Optional[Callable[[], None]] = None):
        self._unsubscribe = unsubscribe
        self._lock = threading.Lock()
        self._latest: Optional[T] = None
        self._version = 0
        self._seen = 0
        self._error: Optional[LedgerError] = None
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None

    def attach(self, unsubscribe: Callable[[], None]) -> None:
        """
        Set the teardown callback once the backend listener exists.

        If the handle was already closed, the listener is torn down now.
        """
        with self._lock:
            closed = self._closed
            self._unsubscribe = unsubscribe
        if closed:
            self._teardown()

    # ------------------------------------------------------------------
    # Producer side (may be called from any thread)
    # ------------------------------------------------------------------

    def publish(self, snapshot: T) -> None:
        """Deliver a full snapshot. Ignored after close."""
        with self._lock:
            if self._closed:
                return
            self._latest = snapshot
            self._version += 1
        self._notify()

    def fail(self, error: LedgerError) -> None:
        """
        Deliver a listener failure.

        The iterator raises it; the subscription is closed afterwards.
        """
        with self._lock:
            if self._closed:
                return
            self._error = error
            self._closed = True
        self._teardown()
        self._notify()

    # ------------------------------------------------------------------
    # Consumer side
    # ------------------------------------------------------------------

    @property
    def latest(self) -> Optional[T]:
        """Most recent snapshot, or None before the first one arrives."""
        with self._lock:
            return self._latest

    @property
    def has_snapshot(self) -> bool:
        with self._lock:
            return self._version > 0

    @property
    def error(self) -> Optional[LedgerError]:
        with self._lock:
            return self._error

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    def close(self) -> None:
        """Stop listening. Safe to call more than once."""
        with self._lock:
            already = self._closed
            self._closed = True
        if not already:
            self._teardown()
        self._notify()

    def __aiter__(self):
        return self

    async def __anext__(self) -> T:
        with self._lock:
            if self._wakeup is None:
                self._loop = asyncio.get_running_loop()
                self._wakeup = asyncio.Event()

        while True:
            with self._lock:
                if self._error is not None:
                    raise self._error
                if self._version > self._seen:
                    self._seen = self._version
                    return self._latest
                if self._closed:
                    raise StopAsyncIteration
                self._wakeup.clear()
            await self._wakeup.wait()

    def __enter__(self) -> "Subscription[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    async def __aenter__(self) -> "Subscription[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _teardown(self) -> None:
        with self._lock:
            unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()

    def _notify(self) -> None:
        with self._lock:
            loop, wakeup = self._loop, self._wakeup
        if loop is None or wakeup is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(wakeup.set)
