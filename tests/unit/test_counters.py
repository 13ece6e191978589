"""Unit tests for sequence counters."""

from __future__ import annotations

import threading

from teller_simulator.config import MockData
from teller_simulator.counters import SequenceCounter, SequenceCounters


class TestSequenceCounter:
    """Tests for SequenceCounter."""

    def test_starts_at_given_value(self) -> None:
        """First allocation returns the start value."""
        counter = SequenceCounter(1001)

        assert counter.next() == 1001
        assert counter.next() == 1002
        assert counter.peek() == 1003

    def test_peek_does_not_allocate(self) -> None:
        """peek leaves the counter unchanged."""
        counter = SequenceCounter(5)

        assert counter.peek() == 5
        assert counter.peek() == 5
        assert counter.next() == 5

    def test_concurrent_allocation_is_unique_and_contiguous(self) -> None:
        """Racing threads never receive the same id and leave no gaps."""
        counter = SequenceCounter(2001)
        results: list[int] = []
        results_lock = threading.Lock()
        barrier = threading.Barrier(8)

        def worker() -> None:
            barrier.wait()
            allocated = [counter.next() for _ in range(500)]
            with results_lock:
                results.extend(allocated)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 4000
        assert sorted(results) == list(range(2001, 6001))


class TestSequenceCounters:
    """Tests for the counter bundle."""

    def test_from_mock_data_defaults(self) -> None:
        """Each sequence starts where the mock data says."""
        counters = SequenceCounters.from_mock_data(MockData())

        assert counters.session.peek() == 1001
        assert counters.call.peek() == 2001
        assert counters.image.peek() == 1

    def test_sequences_are_independent(self) -> None:
        """Allocating from one sequence does not move the others."""
        counters = SequenceCounters.from_mock_data(MockData(session_id_start=10, call_id_start=20))

        counters.session.next()
        counters.session.next()

        assert counters.call.next() == 20
        assert counters.session.next() == 12
