#!/usr/bin/env python3
"""
Request context: cancellation and deadline for one inbound event.

The HTTP layer creates a RequestContext per inbound POST and hands it down to
the forwarding client. The outbound call stops waiting as soon as the context
is cancelled or its deadline passes.
"""

import threading
import time
from typing import Callable, List, Optional

CANCELED = "context canceled"
DEADLINE_EXCEEDED = "context deadline exceeded"


class RequestContext:
    """
    Cancellation signal plus optional deadline.

    Args:
        timeout: Seconds until the context expires. None (or 0) means no deadline.
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline: Optional[float] = None
        if timeout:
            self.deadline = time.monotonic() + timeout

        self._lock = threading.Lock()
        self._cancelled = threading.Event()
        self._reason: Optional[str] = None
        self._callbacks: List[Callable[[], None]] = []

    @classmethod
    def background(cls) -> "RequestContext":
        """A context that is never cancelled and has no deadline."""
        return cls()

    def cancel(self, reason: str = CANCELED) -> None:
        with self._lock:
            if self._cancelled.is_set():
                return
            self._reason = reason
            self._cancelled.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            callback()

    def add_cancel_callback(self, callback: Callable[[], None]) -> None:
        """Run callback on cancellation (immediately if already cancelled)."""
        with self._lock:
            if not self._cancelled.is_set():
                self._callbacks.append(callback)
                return
        callback()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None without one. Never negative."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set() or self.expired()

    @property
    def error(self) -> Optional[str]:
        """Why the context is done, or None while it is still live."""
        if self._cancelled.is_set():
            return self._reason
        if self.expired():
            return DEADLINE_EXCEEDED
        return None

    def __repr__(self):
        return f"RequestContext(remaining={self.remaining()}, error={self.error!r})"
