"""Sequence counters for generated identifiers.

Session, call and image ids are handed out by counters shared across all
connections. Allocation is lock-protected so two concurrently handled
requests can never receive the same id, and ids are contiguous.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass

from .config import MockData


class SequenceCounter:
    """Monotonically increasing integer counter, safe for concurrent use."""

    def __init__(self, start: int = 1) -> None:
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        """Allocate the next identifier."""
        with self._lock:
            value = self._next
            self._next += 1
            return value

    def peek(self) -> int:
        """The identifier the next call to ``next()`` would return."""
        with self._lock:
            return self._next


@dataclass
class SequenceCounters:
    """All id sequences used by the simulated devices."""

    session: SequenceCounter
    call: SequenceCounter
    image: SequenceCounter

    @classmethod
    def from_mock_data(cls, mock: MockData) -> SequenceCounters:
        return cls(
            session=SequenceCounter(mock.session_id_start),
            call=SequenceCounter(mock.call_id_start),
            image=SequenceCounter(mock.image_id_start),
        )
