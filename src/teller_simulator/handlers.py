"""Simulated device handlers.

One handler per ``Method``. Handlers are synchronous and never block: they
return the immediate result payload for the request, and express simulated
device latency only through ``HandlerContext.defer``.

Handler signature:

    def handler(params, request_id, ctx) -> result | None

``request_id`` is None when the method arrived as a notification.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from .config import SimulatorConfig
from .counters import SequenceCounters
from .errors import MethodNotFound
from .protocol.jsonrpc import RequestId
from .protocol.methods import Method, ServerNotification

if TYPE_CHECKING:
    from .connection import TerminalConnection
    from .scheduler import DeferredNotification, NotificationScheduler, ParamsSource

logger = logging.getLogger(__name__)

# 1x1 transparent PNG
BLANK_PNG_BASE64 = (
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)

# Simulated device latency, in milliseconds
CALL_ESTABLISH_DELAY_MS = 1000
CALL_REESTABLISH_DELAY_MS = 500
CALL_END_DELAY_MS = 500
COMMAND_COMPLETE_DELAY_MS = 1000
CARD_READ_DELAY_MS = 2000
DISPENSE_DELAY_MS = 3000
SIGNATURE_DELAY_MS = 2000
CHAT_ECHO_DELAY_MS = 500


@dataclass
class HandlerContext:
    """Everything a handler may touch besides its params."""

    connection: TerminalConnection
    config: SimulatorConfig
    counters: SequenceCounters
    scheduler: NotificationScheduler

    def defer(self, delay_ms: int, method: str, params: ParamsSource = None) -> DeferredNotification:
        """Send ``method`` to this connection after a simulated device delay."""
        return self.scheduler.schedule(
            self.connection, self.config.scaled_delay(delay_ms), method, params
        )


Handler = Callable[[Any, "RequestId | None", HandlerContext], Any]

BUILTIN_HANDLERS: dict[Method, Handler] = {}


def handles(method: Method) -> Callable[[Handler], Handler]:
    """Register a function as the built-in handler for ``method``."""

    def decorator(fn: Handler) -> Handler:
        if method in BUILTIN_HANDLERS:
            raise ValueError(f"Duplicate handler for {method.value}")
        BUILTIN_HANDLERS[method] = fn
        return fn

    return decorator


class HandlerRegistry:
    """Closed mapping from method to handler.

    Every ``Method`` member must have a handler; a missing one is a startup
    error rather than a runtime "method not found". The mapping cannot be
    changed after construction.
    """

    def __init__(self, handlers: Mapping[Method, Handler] | None = None) -> None:
        handlers = dict(BUILTIN_HANDLERS if handlers is None else handlers)
        missing = [m.value for m in Method if m not in handlers]
        if missing:
            raise RuntimeError(f"No handler registered for: {', '.join(missing)}")
        self._handlers: Mapping[Method, Handler] = MappingProxyType(handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and Method.parse(name) in self._handlers

    @property
    def methods(self) -> list[str]:
        return [m.value for m in self._handlers]

    def lookup(self, name: str) -> Handler:
        """Find the handler for a wire method name.

        Raises:
            MethodNotFound: If the name is outside the method catalogue
        """
        method = Method.parse(name)
        if method is None:
            raise MethodNotFound(name)
        return self._handlers[method]


def _param(params: Any, key: str, default: Any = None) -> Any:
    if isinstance(params, dict):
        return params.get(key, default)
    return default


def _ok() -> dict[str, Any]:
    return {"success": True}


# =============================================================================
# Availability
# =============================================================================


@handles(Method.PING)
def handle_ping(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Ping received")
    return _ok()


@handles(Method.AVAILABLE_TELLERS)
def handle_available_tellers(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Available tellers request")
    mock = ctx.config.mock_data
    return {
        "success": True,
        "availability": 1,
        "available_tellers": [
            {
                "id": mock.teller_id,
                "user": {
                    "id": mock.teller_id,
                    "username": mock.teller_username,
                    "firstname": mock.teller_first_name,
                    "lastname": mock.teller_last_name,
                },
                "skills": [
                    {
                        "id": 1,
                        "category": {"id": 1, "name": "Language", "description": "Language skills"},
                        "value": "English",
                    },
                    {
                        "id": 2,
                        "category": {"id": 2, "name": "Language", "description": "Language skills"},
                        "value": "Spanish",
                    },
                ],
            }
        ],
        "wait_time": 0,
    }


# =============================================================================
# Session
# =============================================================================


@handles(Method.CREATE_SESSION)
def handle_create_session(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    session_id = ctx.counters.session.next()
    logger.info(f"Creating session {session_id}, selfservice: {_param(params, 'selfservice')}")
    return {"success": True, "session_id": session_id}


@handles(Method.REQUEST_HELP)
def handle_request_help(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"Request help with skills: {_param(params, 'skills')}")
    teller_id = ctx.config.mock_data.teller_id

    # The call id is allocated when the call is established, not when help is requested
    def call_established() -> dict[str, Any]:
        return {"call": {"id": ctx.counters.call.next(), "teller": teller_id}}

    ctx.defer(CALL_ESTABLISH_DELAY_MS, ServerNotification.CALL_ESTABLISHED.value, call_established)
    return _ok()


@handles(Method.CALL_INITIALIZED)
def handle_call_initialized(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"Call initialized: {_param(params, 'call_id')}")
    return _ok()


@handles(Method.REJOIN_CALL)
def handle_rejoin_call(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    call_id = _param(params, "call_id")
    logger.info(f"Rejoin call: {call_id}")
    ctx.defer(
        CALL_REESTABLISH_DELAY_MS,
        ServerNotification.CALL_REESTABLISHED.value,
        {"success": True, "call_id": call_id},
    )
    return _ok()


@handles(Method.CLOSE_SESSION)
def handle_close_session(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    session_id = _param(params, "session_id")
    logger.info(f"Close session: {session_id}")
    ctx.defer(CALL_END_DELAY_MS, ServerNotification.CALL_ENDED.value, {"session_id": session_id})
    return _ok()


# =============================================================================
# Terminal status & actions
# =============================================================================


@handles(Method.UPDATE_TERMINAL_STATUS)
def handle_update_terminal_status(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"Terminal status: {_param(params, 'status')}")
    return _ok()


@handles(Method.ACTION_INIT)
def handle_action_init(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    action = _param(params, "action")
    logger.info(f"Action init: {action}")
    return {
        "action": action,
        "status": "ok",
        "commands": [
            {"id": "confirm", "enabled": True, "label": "Confirm"},
            {"id": "cancel", "enabled": True, "label": "Cancel"},
        ],
        "data": {},
    }


@handles(Method.COMMAND_START)
def handle_command_start(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"Command start: {_param(params, 'command')}")
    ctx.defer(
        COMMAND_COMPLETE_DELAY_MS,
        ServerNotification.COMMAND_COMPLETE.value,
        {"id": _param(params, "id"), "result": "success", "detail": {}},
    )
    return _ok()


# =============================================================================
# Card reader
# =============================================================================


@handles(Method.READ_CARD)
def handle_read_card(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Reading card")
    ctx.defer(
        CARD_READ_DELAY_MS,
        ServerNotification.CARD_READ.value,
        {
            "success": True,
            "card_data": {
                "track1": "B1234567890123456^DOE/JOHN^25121011234567890123",
                "track2": "1234567890123456=25121011234567890",
                "track3": "",
            },
        },
    )
    return _ok()


@handles(Method.EJECT_CARD)
def handle_eject_card(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Ejecting card")
    return _ok()


# =============================================================================
# Cash dispenser
# =============================================================================


@handles(Method.DISPENSE)
def handle_dispense(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    amount = _param(params, "amount")
    logger.info(f"Dispense amount: {amount}")
    ctx.defer(
        DISPENSE_DELAY_MS,
        ServerNotification.DISPENSE_COMPLETE.value,
        {"success": True, "amount": amount, "notes": _param(params, "notes") or []},
    )
    return _ok()


@handles(Method.PRESENT)
def handle_present(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Presenting cash")
    return _ok()


@handles(Method.RETRACT)
def handle_retract(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Retracting cash")
    return _ok()


# =============================================================================
# Signature pad
# =============================================================================


@handles(Method.REQUEST_SIGNATURE)
def handle_request_signature(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"Signature requested, source: {_param(params, 'source')}")
    ctx.defer(
        SIGNATURE_DELAY_MS,
        ServerNotification.SIGNATURE_CAPTURED.value,
        {
            "success": True,
            "response_code": 0,
            "signature_data": f"data:image/png;base64,{BLANK_PNG_BASE64}",
        },
    )
    return _ok()


@handles(Method.CANCEL_REQUEST_SIGNATURE)
def handle_cancel_request_signature(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Cancelling signature request")
    return _ok()


# =============================================================================
# Transactions, journal, chat
# =============================================================================


@handles(Method.CONFIRM_TRANSACTION)
def handle_confirm_transaction(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"Confirm transaction, type: {_param(params, 'type')}")
    return _ok()


@handles(Method.FULFILLMENT)
def handle_fulfillment(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info("Transaction fulfillment")
    return {"success": True, "status": 0, "message": "Transaction completed successfully"}


@handles(Method.EJ_LOG)
def handle_ej_log(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    logger.info(f"EJ log: {_param(params, 'message')}")
    return _ok()


@handles(Method.SEND_MESSAGE)
def handle_send_message(params: Any, request_id: RequestId | None, ctx: HandlerContext) -> Any:
    message = _param(params, "message")
    logger.info(f"Chat message: {message}")

    def echo() -> dict[str, Any]:
        return {"from": "teller", "message": f"Echo: {message}", "timestamp": int(time.time() * 1000)}

    ctx.defer(CHAT_ECHO_DELAY_MS, ServerNotification.MESSAGE_RECEIVED.value, echo)
    return _ok()
