"""Connection registry.

Tracks live terminal and observer connections in two disjoint sets and
provides best-effort broadcast primitives. Broadcasts iterate a snapshot of
the target set, so a concurrent connect or disconnect never disturbs a
broadcast in flight, and a failure on one target never reaches the others
or the caller.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from typing import Any

from .connection import ObserverConnection, TerminalConnection
from .errors import DeliveryFailure
from .protocol.jsonrpc import Message, encode

logger = logging.getLogger(__name__)

TerminalClosedHook = Callable[[TerminalConnection], Any]


class ConnectionRegistry:
    """Registry of all live terminal and observer connections."""

    def __init__(self) -> None:
        self._terminals: set[TerminalConnection] = set()
        self._observers: set[ObserverConnection] = set()
        self._close_hooks: list[TerminalClosedHook] = []
        # Never held across an await
        self._lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    def on_terminal_closed(self, hook: TerminalClosedHook) -> None:
        """Register a callback run once when a terminal is unregistered."""
        self._close_hooks.append(hook)

    def register_terminal(self, connection: TerminalConnection) -> None:
        with self._lock:
            self._terminals.add(connection)
        logger.info(f"Terminal connected: {connection.connection_id} from {connection.remote_address}")

    def unregister_terminal(self, connection: TerminalConnection) -> bool:
        """Remove a terminal and run the close hooks.

        Returns:
            False if the terminal was not registered (duplicate close)
        """
        with self._lock:
            if connection not in self._terminals:
                return False
            self._terminals.discard(connection)

        for hook in list(self._close_hooks):
            try:
                hook(connection)
            except Exception:
                logger.exception(f"Terminal close hook failed for {connection.connection_id}")

        logger.info(f"Terminal disconnected: {connection.connection_id} from {connection.remote_address}")
        return True

    def register_observer(self, connection: ObserverConnection) -> None:
        with self._lock:
            self._observers.add(connection)
        logger.info(f"Observer connected: {connection.connection_id} from {connection.remote_address}")

    def unregister_observer(self, connection: ObserverConnection) -> bool:
        with self._lock:
            if connection not in self._observers:
                return False
            self._observers.discard(connection)
        logger.info(f"Observer disconnected: {connection.connection_id} from {connection.remote_address}")
        return True

    def is_terminal(self, connection: TerminalConnection) -> bool:
        with self._lock:
            return connection in self._terminals

    def terminals(self) -> list[TerminalConnection]:
        """Snapshot of the registered terminals."""
        with self._lock:
            return list(self._terminals)

    def observers(self) -> list[ObserverConnection]:
        """Snapshot of the registered observers."""
        with self._lock:
            return list(self._observers)

    def terminal_count(self) -> int:
        with self._lock:
            return len(self._terminals)

    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)

    # -------------------------------------------------------------------------
    # Broadcast
    # -------------------------------------------------------------------------

    def broadcast_to_observers(self, payload: dict[str, Any]) -> int:
        """Send a JSON payload to every observer.

        Returns:
            Number of observers the payload was queued for
        """
        observers = self.observers()
        if not observers:
            return 0

        text = json.dumps(payload)
        delivered = 0
        for observer in observers:
            try:
                observer.send_text(text)
                delivered += 1
            except DeliveryFailure as e:
                logger.debug(f"Skipping observer: {e}")
            except Exception:
                logger.exception(f"Error broadcasting to observer {observer.connection_id}")
        return delivered

    def broadcast_to_terminals(self, message: Message) -> int:
        """Send the same JSON-RPC frame to every terminal.

        Returns:
            Number of terminals the frame was queued for
        """
        text = encode(message)
        delivered = 0
        for terminal in self.terminals():
            try:
                terminal.send_text(text)
                delivered += 1
            except DeliveryFailure as e:
                logger.warning(f"Skipping terminal: {e}")
            except Exception:
                logger.exception(f"Error broadcasting to terminal {terminal.connection_id}")
        return delivered
