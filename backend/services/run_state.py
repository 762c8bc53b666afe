"""Cooperative run/stop flag shared by the discovery loop and its callers.

The flag is owned: ``try_begin(owner)`` is a compare-and-swap from idle to
running, and only the owner that won it can release it. ``stop()`` clears
the flag regardless of owner and is safe to call from any thread or from a
signal handler; the lock is reentrant so a handler that interrupts a
holder on the same thread does not deadlock. ``rearm(owner)`` lets a
holder that was asked to stop, but has not unwound yet, keep running.
"""

import asyncio
import threading
import time
from typing import Optional


class RunState:
    def __init__(self):
        self._lock = threading.RLock()
        self._running = False
        self._owner: Optional[str] = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._running

    @property
    def owner(self) -> Optional[str]:
        with self._lock:
            return self._owner

    def try_begin(self, owner: str) -> bool:
        """Move idle -> running for ``owner``. False if anyone holds the state."""
        with self._lock:
            if self._running or self._owner is not None:
                return False
            self._running = True
            self._owner = owner
            return True

    def rearm(self, owner: str) -> bool:
        """Undo a pending stop for ``owner`` before it releases the state."""
        with self._lock:
            if self._owner != owner or self._running:
                return False
            self._running = True
            return True

    def holds(self, owner: str) -> bool:
        with self._lock:
            return self._running and self._owner == owner

    def release(self, owner: str) -> bool:
        """Return to idle if ``owner`` still holds the state."""
        with self._lock:
            if self._owner != owner:
                return False
            self._running = False
            self._owner = None
            return True

    def stop(self) -> None:
        """Request a stop. Observed at the next checkpoint of the holder."""
        with self._lock:
            self._running = False

    async def sleep_unless_stopped(self, duration: float, poll: float) -> bool:
        """Sleep up to ``duration`` seconds, waking every ``poll`` seconds to
        check the flag.

        Returns True if the full duration elapsed while running, False as
        soon as a stop is observed.
        """
        if not self.is_running:
            return False
        poll = max(poll, 0.001)
        deadline = time.monotonic() + max(duration, 0.0)
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            await asyncio.sleep(min(poll, remaining))
            if not self.is_running:
                return False
