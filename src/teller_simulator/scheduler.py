"""Deferred notification scheduler.

Handlers express simulated device latency by scheduling a notification to
fire after a delay. Each scheduled item is an explicit, cancellable timer
tied to its target terminal: it fires at most once, and only if that
terminal is still registered when the timer expires. Closing a terminal
cancels all of its pending items.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Union

from .protocol.jsonrpc import JsonRpcNotification, Message, create_notification

if TYPE_CHECKING:
    from .connection import TerminalConnection
    from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)

# Params may be given eagerly, or as a factory evaluated when the timer fires
ParamsSource = Union[Any, Callable[[], Any]]

DeliverFn = Callable[["TerminalConnection", Message], None]


class DeferredNotification:
    """Handle for one scheduled notification."""

    def __init__(
        self,
        connection: TerminalConnection,
        delay_ms: int,
        method: str,
        params: ParamsSource = None,
    ) -> None:
        self.connection = connection
        self.delay_ms = delay_ms
        self.method = method
        self.params = params
        self.fired = False
        self.cancelled = False
        self._timer: asyncio.TimerHandle | None = None

    def __repr__(self) -> str:
        state = "fired" if self.fired else "cancelled" if self.cancelled else "pending"
        return f"<DeferredNotification {self.method} +{self.delay_ms}ms {state}>"

    @property
    def pending(self) -> bool:
        return not self.fired and not self.cancelled

    def cancel(self) -> None:
        if self.fired or self.cancelled:
            return
        self.cancelled = True
        if self._timer is not None:
            self._timer.cancel()
        self.connection.pending.discard(self)

    def build(self) -> JsonRpcNotification:
        params = self.params() if callable(self.params) else self.params
        return create_notification(self.method, params)


class NotificationScheduler:
    """Schedules notifications against terminal connections.

    Usage:
        scheduler = NotificationScheduler(registry, deliver=dispatcher.emit)
        scheduler.schedule(connection, 2000, "CardReaderController.card_read", {...})
    """

    def __init__(self, registry: ConnectionRegistry, deliver: DeliverFn) -> None:
        self._registry = registry
        self._deliver = deliver
        self._scheduled: set[DeferredNotification] = set()
        registry.on_terminal_closed(self.cancel_all)

    @property
    def pending_count(self) -> int:
        return len(self._scheduled)

    def schedule(
        self,
        connection: TerminalConnection,
        delay_ms: int,
        method: str,
        params: ParamsSource = None,
    ) -> DeferredNotification:
        """Schedule ``method`` to be sent to ``connection`` after ``delay_ms``.

        Must be called from the event loop. Scheduling against a connection
        that is not registered returns an already-cancelled handle.
        """
        item = DeferredNotification(connection, max(0, delay_ms), method, params)

        if not self._registry.is_terminal(connection):
            logger.debug(f"Not scheduling {method}: {connection.connection_id} is not registered")
            item.cancelled = True
            return item

        loop = asyncio.get_running_loop()
        item._timer = loop.call_later(item.delay_ms / 1000, self._fire, item)
        connection.pending.add(item)
        self._scheduled.add(item)
        logger.debug(f"Scheduled {method} for {connection.connection_id} in {item.delay_ms}ms")
        return item

    def cancel_all(self, connection: TerminalConnection) -> int:
        """Cancel every pending notification for ``connection``. Idempotent."""
        items = list(connection.pending)
        for item in items:
            item.cancel()
            self._scheduled.discard(item)
        if items:
            logger.debug(f"Cancelled {len(items)} deferred notification(s) for {connection.connection_id}")
        return len(items)

    def shutdown(self) -> None:
        """Cancel everything still scheduled."""
        for item in list(self._scheduled):
            item.cancel()
        self._scheduled.clear()

    def _fire(self, item: DeferredNotification) -> None:
        self._scheduled.discard(item)
        item.connection.pending.discard(item)
        if item.cancelled:
            return
        if not self._registry.is_terminal(item.connection):
            item.cancelled = True
            return

        item.fired = True
        try:
            notification = item.build()
        except Exception:
            logger.exception(f"Failed to build deferred notification {item.method}")
            return
        self._deliver(item.connection, notification)
