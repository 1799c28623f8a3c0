# src/bgwatch/mailbox.py: Restart request channel and watchdog mode.
# The mailbox is a single slot: any number of requests posted before the
# control loop gets to them collapse into one. Posting never blocks, because
# the producer is usually a signal handler. The mode flag says whether the
# next request should be served as a blue/green transfer.

import threading
from typing import Optional, Tuple


class RestartMailbox:
    """Single-slot, coalescing handoff of restart requests to the control loop."""

    def __init__(self):
        # Reentrant for the same reason as WatchdogMode._lock.
        self._cond = threading.Condition(threading.RLock())
        self._pending = False
        self._closed = False

    def offer(self) -> bool:
        """Post a restart request. Returns False if one was already pending."""
        with self._cond:
            if self._closed or self._pending:
                return False
            self._pending = True
            self._cond.notify()
            return True

    def pop(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for a request.

        Returns True when a request was consumed, False when the mailbox was
        closed (or the optional timeout ran out).
        """
        with self._cond:
            self._cond.wait_for(lambda: self._pending or self._closed, timeout)
            if self._closed or not self._pending:
                return False
            self._pending = False
            return True

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    @property
    def pending(self) -> bool:
        with self._cond:
            return self._pending

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed


class WatchdogMode:
    """
    The normal/transferring flag shared between the signal handler and the loop.

    Every transfer request bumps a generation counter. The loop clears the flag
    only if no newer request arrived while it was busy, so a reload received
    mid-restart is still served as a transfer.

    The lock is reentrant: a reload signal can interrupt the main thread while
    a previous reload handler is inside request_transfer().
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._transferring = False
        self._generation = 0

    def request_transfer(self) -> None:
        with self._lock:
            self._transferring = True
            self._generation += 1

    def snapshot(self) -> Tuple[bool, int]:
        with self._lock:
            return self._transferring, self._generation

    def complete_transfer(self, generation: int) -> bool:
        """Return to normal unless a newer transfer was requested."""
        with self._lock:
            if self._generation != generation:
                return False
            self._transferring = False
            return True

    @property
    def transferring(self) -> bool:
        with self._lock:
            return self._transferring

    @property
    def name(self) -> str:
        return "transferring" if self.transferring else "normal"
