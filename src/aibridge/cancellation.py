"""Cancellation broadcaster - a single-slot generation signal.

Every call subscribes before doing I/O and races its work against
``subscription.changed()``. ``advance()`` bumps the generation and wakes all
waiting subscribers, which makes it a global "cancel whatever is in flight".

Example:
    ```python
    broadcaster = CancellationBroadcaster()
    sub = broadcaster.subscribe()
    broadcaster.advance()
    await sub.changed()  # resolves immediately
    ```

The broadcaster has no per-request scope: one ``advance()`` cancels every
call currently racing against it. The bridge is driven by a single-focus UI
that runs one logical completion at a time.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Optional


class CancelSubscription:
    """Handle that remembers the generation it has already observed."""

    def __init__(self, broadcaster: CancellationBroadcaster, seen: int):
        self._broadcaster = broadcaster
        self._seen = seen

    @property
    def seen(self) -> int:
        return self._seen

    def has_changed(self) -> bool:
        """True if the generation advanced past the observed value."""
        return self._broadcaster.generation > self._seen

    async def changed(self) -> int:
        """Wait until the generation advances past the observed value.

        Resolves immediately if it already has. Several advances that happen
        before this handle is awaited are observed as a single change.

        Returns:
            The generation now observed
        """
        loop = asyncio.get_running_loop()
        while not self.has_changed():
            waiter = loop.create_future()
            self._broadcaster._add_waiter(waiter)
            try:
                # An advance from another thread may have landed before the
                # waiter was registered
                if not self.has_changed():
                    await waiter
            finally:
                self._broadcaster._discard_waiter(waiter)
        self._seen = self._broadcaster.generation
        return self._seen


class CancellationBroadcaster:
    """Monotonic generation counter with wake-up for waiting subscribers."""

    def __init__(self) -> None:
        self._generation = 0
        self._waiters: set[asyncio.Future] = set()
        # Guards both the counter and the waiter set
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def subscribe(self) -> CancelSubscription:
        """Capture the current generation."""
        with self._lock:
            return CancelSubscription(self, self._generation)

    def _add_waiter(self, waiter: asyncio.Future) -> None:
        with self._lock:
            self._waiters.add(waiter)

    def _discard_waiter(self, waiter: asyncio.Future) -> None:
        with self._lock:
            self._waiters.discard(waiter)

    def advance(self) -> int:
        """Bump the generation and wake every waiting subscriber.

        Safe to call from a thread other than the one running the waiters'
        event loop.

        Returns:
            The new generation
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
            waiters = list(self._waiters)

        try:
            current = asyncio.get_running_loop()
        except RuntimeError:
            current = None

        for waiter in waiters:
            loop = waiter.get_loop()
            if loop is current:
                _wake(waiter)
            elif not loop.is_closed():
                loop.call_soon_threadsafe(_wake, waiter)

        logging.info("[aibridge] Cancellation requested (generation %d)", generation)
        return generation


def _wake(waiter: asyncio.Future) -> None:
    if not waiter.done():
        waiter.set_result(None)


_default: Optional[CancellationBroadcaster] = None


def get_default_broadcaster() -> CancellationBroadcaster:
    """Process-wide broadcaster used by clients built without one."""
    global _default
    if _default is None:
        _default = CancellationBroadcaster()
    return _default


def cancel_all() -> int:
    """Cancel every call racing against the process-wide broadcaster."""
    return get_default_broadcaster().advance()


__all__ = [
    "CancellationBroadcaster",
    "CancelSubscription",
    "get_default_broadcaster",
    "cancel_all",
]
