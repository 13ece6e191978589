"""Terminal message dispatcher.

Routes every inbound terminal frame through the codec and the handler
registry, emits immediate replies and keeps observers informed of all
traffic in both directions. Also executes observer commands.

Dispatch is synchronous: handlers never block and all outbound frames are
only enqueued, so one receive loop per connection is enough to keep replies
in request order.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import BaseModel, ValidationError

from .config import SimulatorConfig
from .connection import ObserverConnection, TerminalConnection
from .counters import SequenceCounters
from .errors import DecodeError, DeliveryFailure, DispatchError, HandlerFailure, MethodNotFound
from .handlers import HandlerContext, HandlerRegistry
from .observer import ObserverChannel
from .protocol.jsonrpc import (
    JsonRpcErrorCode,
    JsonRpcErrorResponse,
    JsonRpcRequest,
    Message,
    create_error,
    create_notification,
    create_response,
    decode,
    encode,
    is_response,
)
from .protocol.observer import (
    NotificationSentEvent,
    ObserverCommandType,
    ObserverErrorEvent,
    SendNotificationCommand,
)
from .registry import ConnectionRegistry
from .scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


class Dispatcher:
    """Processes terminal frames and observer commands."""

    def __init__(
        self,
        registry: ConnectionRegistry,
        observers: ObserverChannel,
        handlers: HandlerRegistry,
        counters: SequenceCounters,
        config: SimulatorConfig,
    ) -> None:
        self._registry = registry
        self._observers = observers
        self._handlers = handlers
        self._counters = counters
        self._config = config
        self.scheduler = NotificationScheduler(registry, deliver=self.emit)

    # -------------------------------------------------------------------------
    # Terminal traffic
    # -------------------------------------------------------------------------

    def dispatch(self, connection: TerminalConnection, raw: str | bytes) -> None:
        """Process one inbound frame from a terminal."""
        try:
            message = decode(raw)
        except DecodeError as e:
            logger.warning(f"Parse error from {connection.connection_id}: {e.reason}")
            text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw
            self._observers.mirror("incoming", text)
            self.emit(
                connection,
                create_error(None, JsonRpcErrorCode.PARSE_ERROR, "Parse error", e.reason),
            )
            return

        logger.debug(f"← {connection.connection_id} {encode(message)}")
        self._observers.mirror("incoming", message)

        if is_response(message):
            logger.warning(f"Ignoring response frame from terminal {connection.connection_id}")
            return

        is_call = isinstance(message, JsonRpcRequest)
        request_id = message.id if is_call else None
        method = message.method

        try:
            handler = self._handlers.lookup(method)
        except MethodNotFound as e:
            if is_call:
                self.emit(connection, JsonRpcErrorResponse(id=request_id, error=e.to_error()))
            else:
                logger.info(f"Dropping notification for unknown method: {method}")
            return

        ctx = HandlerContext(
            connection=connection,
            config=self._config,
            counters=self._counters,
            scheduler=self.scheduler,
        )
        try:
            result = handler(message.params, request_id, ctx)
        except DispatchError as e:
            self._fail(connection, request_id, method, e)
            return
        except Exception as e:
            logger.exception(f"Handler for {method} failed")
            self._fail(connection, request_id, method, HandlerFailure(method, e))
            return

        if is_call and result is not None:
            self.emit(connection, create_response(request_id, result))

    def _fail(
        self,
        connection: TerminalConnection,
        request_id: Any,
        method: str,
        error: DispatchError,
    ) -> None:
        if request_id is None:
            logger.warning(f"Notification {method} failed: {error.message} ({error.data})")
            return
        self.emit(connection, JsonRpcErrorResponse(id=request_id, error=error.to_error()))

    def emit(self, connection: TerminalConnection, message: Message) -> bool:
        """Send a message to one terminal and mirror it to observers.

        Returns:
            False if the connection was already closed
        """
        text = encode(message)
        try:
            connection.send_text(text)
        except DeliveryFailure as e:
            logger.warning(f"Not sent: {e}")
            return False

        logger.debug(f"→ {connection.connection_id} {text}")
        self._observers.mirror("outgoing", message)
        return True

    def inject(self, method: str, params: Any | None = None) -> int:
        """Broadcast a notification to every terminal.

        Returns:
            Number of terminals the notification was queued for
        """
        notification = create_notification(method, params)
        delivered = self._registry.broadcast_to_terminals(notification)
        self._observers.mirror("outgoing", notification)
        logger.info(f"Injected {method} to {delivered} terminal(s)")
        return delivered

    # -------------------------------------------------------------------------
    # Observer commands
    # -------------------------------------------------------------------------

    def handle_observer_command(self, observer: ObserverConnection, raw: str | bytes) -> None:
        """Execute one command frame received from an observer."""
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Invalid JSON from observer {observer.connection_id}")
            self._reply(observer, ObserverErrorEvent(error="Invalid JSON"))
            return

        if not isinstance(data, dict):
            self._reply(observer, ObserverErrorEvent(error="Expected a JSON object"))
            return

        command_type = data.get("type")
        match command_type:
            case ObserverCommandType.SEND_NOTIFICATION.value:
                try:
                    command = SendNotificationCommand.model_validate(data)
                except ValidationError as e:
                    logger.warning(f"Invalid send_notification from {observer.connection_id}: {e}")
                    self._reply(observer, ObserverErrorEvent(error=f"Invalid send_notification: {e}"))
                    return
                self.inject(command.method, command.params)
                self._reply(observer, NotificationSentEvent(method=command.method))
            case _:
                logger.warning(f"Unknown observer command type: {command_type}")
                self._reply(observer, ObserverErrorEvent(error=f"Unknown command type: {command_type}"))

    def _reply(self, observer: ObserverConnection, event: BaseModel) -> None:
        try:
            observer.send_json(event.model_dump(mode="json"))
        except DeliveryFailure as e:
            logger.debug(f"Observer reply dropped: {e}")
