#!/usr/bin/env python3
"""
Thread-safe event/error counters.

The proxy keeps two monotonically increasing 32-bit unsigned counters: one for
events successfully forwarded to Home Assistant and one for failed attempts.
They are operational metrics, so overflow simply wraps around to zero.
"""

import threading
from typing import NamedTuple

UINT32_MASK = 0xFFFFFFFF


class AtomicCounter:
    """A 32-bit unsigned counter that is safe to bump from many request threads."""

    def __init__(self, value: int = 0):
        self._value = value & UINT32_MASK
        self._lock = threading.Lock()

    def increment(self) -> int:
        """Add one (wrapping at 2**32) and return the new value."""
        with self._lock:
            self._value = (self._value + 1) & UINT32_MASK
            return self._value

    def load(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self):
        return f"AtomicCounter({self.load()})"


class CounterSnapshot(NamedTuple):
    """Event/error counts read at (roughly) the same moment."""

    event_count: int
    error_count: int


class EventCounters:
    """
    The pair of counters owned by the gateway.

    Each counter is individually linearizable. Reading both is not a
    transaction: under concurrent load a snapshot may see one counter bumped
    slightly before or after the other.
    """

    def __init__(self):
        self.events = AtomicCounter()
        self.errors = AtomicCounter()

    def record_event(self) -> int:
        return self.events.increment()

    def record_error(self) -> int:
        return self.errors.increment()

    def snapshot(self) -> CounterSnapshot:
        return CounterSnapshot(
            event_count=self.events.load(),
            error_count=self.errors.load(),
        )
