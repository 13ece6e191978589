"""Unit tests for the connection registry and observer channel."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

from teller_simulator.connection import Connection, ObserverConnection, TerminalConnection
from teller_simulator.observer import ObserverChannel
from teller_simulator.protocol.jsonrpc import create_notification, create_response
from teller_simulator.registry import ConnectionRegistry


def make_terminal() -> TerminalConnection:
    return TerminalConnection(MagicMock(), remote_address="127.0.0.1:1")


def make_observer() -> ObserverConnection:
    return ObserverConnection(MagicMock(), remote_address="127.0.0.1:2")


class ExplodingObserver(ObserverConnection):
    """Observer whose send fails with an unexpected error."""

    def send_text(self, text: str) -> None:
        raise RuntimeError("exploded")


# =============================================================================
# Membership
# =============================================================================


class TestMembership:
    """Tests for registering and unregistering connections."""

    def test_terminals_and_observers_are_disjoint(self) -> None:
        """Each kind is counted separately."""
        registry = ConnectionRegistry()
        terminal, observer = make_terminal(), make_observer()

        registry.register_terminal(terminal)
        registry.register_observer(observer)

        assert registry.terminal_count() == 1
        assert registry.observer_count() == 1
        assert registry.is_terminal(terminal)
        assert registry.terminals() == [terminal]
        assert registry.observers() == [observer]

    def test_duplicate_unregister_returns_false(self) -> None:
        """Second close of the same terminal is a no-op."""
        registry = ConnectionRegistry()
        terminal = make_terminal()
        registry.register_terminal(terminal)

        assert registry.unregister_terminal(terminal) is True
        assert registry.unregister_terminal(terminal) is False
        assert registry.terminal_count() == 0

    def test_close_hooks_run_exactly_once(self) -> None:
        """Hooks fire on the first unregister only."""
        registry = ConnectionRegistry()
        hook = MagicMock()
        registry.on_terminal_closed(hook)
        terminal = make_terminal()
        registry.register_terminal(terminal)

        registry.unregister_terminal(terminal)
        registry.unregister_terminal(terminal)

        hook.assert_called_once_with(terminal)

    def test_failing_hook_does_not_block_others(self) -> None:
        """A raising hook is logged and the next hook still runs."""
        registry = ConnectionRegistry()
        second = MagicMock()
        registry.on_terminal_closed(MagicMock(side_effect=RuntimeError("hook failed")))
        registry.on_terminal_closed(second)
        terminal = make_terminal()
        registry.register_terminal(terminal)

        assert registry.unregister_terminal(terminal) is True
        second.assert_called_once_with(terminal)

    def test_snapshot_is_a_copy(self) -> None:
        """Mutating the registry does not change an earlier snapshot."""
        registry = ConnectionRegistry()
        first = make_terminal()
        registry.register_terminal(first)

        snapshot = registry.terminals()
        registry.register_terminal(make_terminal())

        assert snapshot == [first]


# =============================================================================
# Broadcast
# =============================================================================


class TestBroadcast:
    """Tests for best-effort broadcast."""

    def test_broadcast_to_terminals(self, sent: Callable[[Connection], list[Any]]) -> None:
        """Every terminal receives the same frame."""
        registry = ConnectionRegistry()
        terminals = [make_terminal() for _ in range(3)]
        for terminal in terminals:
            registry.register_terminal(terminal)

        delivered = registry.broadcast_to_terminals(create_notification("Foo.bar", {"x": 1}))

        assert delivered == 3
        for terminal in terminals:
            assert sent(terminal) == [{"jsonrpc": "2.0", "method": "Foo.bar", "params": {"x": 1}}]

    def test_closed_terminal_skipped(self, sent: Callable[[Connection], list[Any]]) -> None:
        """A closed target is skipped, the rest still receive the frame."""
        registry = ConnectionRegistry()
        open_terminal, closed_terminal = make_terminal(), make_terminal()
        closed_terminal._closed = True
        registry.register_terminal(open_terminal)
        registry.register_terminal(closed_terminal)

        delivered = registry.broadcast_to_terminals(create_response(1, {"ok": True}))

        assert delivered == 1
        assert len(sent(open_terminal)) == 1

    def test_observer_failure_isolated(self, sent: Callable[[Connection], list[Any]]) -> None:
        """An unexpected error on one observer never reaches the caller or the others."""
        registry = ConnectionRegistry()
        healthy = make_observer()
        registry.register_observer(ExplodingObserver(MagicMock(), remote_address="x:1"))
        registry.register_observer(healthy)

        delivered = registry.broadcast_to_observers({"type": "client_count", "count": 0})

        assert delivered == 1
        assert sent(healthy) == [{"type": "client_count", "count": 0}]

    def test_broadcast_without_targets(self) -> None:
        """No targets means nothing delivered."""
        registry = ConnectionRegistry()

        assert registry.broadcast_to_observers({"type": "x"}) == 0
        assert registry.broadcast_to_terminals(create_notification("x")) == 0


# =============================================================================
# ObserverChannel
# =============================================================================


class TestObserverChannel:
    """Tests for observer events."""

    def test_mirror_decoded_message(self, sent: Callable[[Connection], list[Any]]) -> None:
        """Decoded messages are mirrored in wire form."""
        registry = ConnectionRegistry()
        observer = make_observer()
        registry.register_observer(observer)
        channel = ObserverChannel(registry)

        channel.mirror("outgoing", create_response(3, {"success": True}))

        assert sent(observer) == [
            {
                "type": "message_log",
                "direction": "outgoing",
                "message": {"jsonrpc": "2.0", "id": 3, "result": {"success": True}},
            }
        ]

    def test_mirror_raw_text(self, sent: Callable[[Connection], list[Any]]) -> None:
        """Undecodable frames are mirrored as their raw text."""
        registry = ConnectionRegistry()
        observer = make_observer()
        registry.register_observer(observer)

        ObserverChannel(registry).mirror("incoming", "not json")

        assert sent(observer) == [{"type": "message_log", "direction": "incoming", "message": "not json"}]

    def test_announce_and_greet(self, sent: Callable[[Connection], list[Any]]) -> None:
        """Client count reflects registered terminals."""
        registry = ConnectionRegistry()
        observer = make_observer()
        registry.register_observer(observer)
        registry.register_terminal(make_terminal())
        registry.register_terminal(make_terminal())
        channel = ObserverChannel(registry)

        channel.announce_client_count()
        channel.greet(observer)

        assert sent(observer) == [
            {"type": "client_count", "count": 2},
            {"type": "client_count", "count": 2},
        ]

    def test_greet_closed_observer_is_silent(self) -> None:
        """Greeting an observer that already left does not raise."""
        registry = ConnectionRegistry()
        observer = make_observer()
        observer._closed = True

        ObserverChannel(registry).greet(observer)

        assert observer._outbox.empty()
