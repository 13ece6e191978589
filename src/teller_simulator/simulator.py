"""Simulator hub.

Wires the configuration, connection registry, observer channel, handlers,
dispatcher and login store into one object shared by all endpoints, and owns
the connection lifecycle steps common to every endpoint.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from .auth import LoginStore
from .config import SimulatorConfig
from .connection import ObserverConnection, TerminalConnection
from .counters import SequenceCounters
from .dispatcher import Dispatcher
from .handlers import HandlerRegistry
from .observer import ObserverChannel
from .protocol.jsonrpc import create_notification
from .protocol.methods import ServerNotification
from .registry import ConnectionRegistry
from .scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


class TellerSimulator:
    """All shared simulator state for one server instance."""

    def __init__(self, config: SimulatorConfig | None = None) -> None:
        self.config = config or SimulatorConfig()
        self.registry = ConnectionRegistry()
        self.observers = ObserverChannel(self.registry)
        self.counters = SequenceCounters.from_mock_data(self.config.mock_data)
        self.handlers = HandlerRegistry()
        self.dispatcher = Dispatcher(
            registry=self.registry,
            observers=self.observers,
            handlers=self.handlers,
            counters=self.counters,
            config=self.config,
        )
        self.logins = LoginStore()

    @property
    def scheduler(self) -> NotificationScheduler:
        return self.dispatcher.scheduler

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def open_terminal(self, connection: TerminalConnection) -> None:
        """Register a freshly accepted terminal and greet it."""
        connection.start()
        self.registry.register_terminal(connection)
        self.observers.announce_client_count()
        self.dispatcher.emit(
            connection,
            create_notification(
                ServerNotification.CONNECTION_ESTABLISHED.value,
                {"success": True, "timestamp": datetime.now(UTC).isoformat()},
            ),
        )

    async def close_terminal(self, connection: TerminalConnection) -> None:
        """Unregister a terminal, cancel its deferred work and flush its writer."""
        if self.registry.unregister_terminal(connection):
            self.observers.announce_client_count()
        await connection.close()

    def open_observer(self, connection: ObserverConnection) -> None:
        connection.start()
        self.registry.register_observer(connection)
        self.observers.greet(connection)

    async def close_observer(self, connection: ObserverConnection) -> None:
        self.registry.unregister_observer(connection)
        await connection.close()

    def shutdown(self) -> None:
        """Cancel every deferred notification still scheduled."""
        pending = self.scheduler.pending_count
        self.scheduler.shutdown()
        logger.info(f"Simulator stopped, {pending} deferred notification(s) cancelled")

    def health(self) -> dict[str, Any]:
        return {
            "status": "ok",
            "terminals": self.registry.terminal_count(),
            "observers": self.registry.observer_count(),
        }
