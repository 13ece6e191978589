"""Observer wire protocol.

Observers are monitoring/control connections. The server sends them:

    {"type": "client_count", "count": 2}
    {"type": "message_log", "direction": "incoming", "message": {...}}
    {"type": "notification_sent", "method": "ChatController.message_received"}
    {"type": "error", "error": "Unknown command type: foo"}

and accepts one command:

    {"type": "send_notification", "method": "...", "params": {...}}
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel


class ObserverCommandType(str, Enum):
    """Command types accepted from observers."""

    SEND_NOTIFICATION = "send_notification"


Direction = Literal["incoming", "outgoing"]


class ClientCountEvent(BaseModel):
    type: Literal["client_count"] = "client_count"
    count: int


class MessageLogEvent(BaseModel):
    """Mirror of one frame processed or emitted for a terminal.

    ``message`` is the decoded frame, or the raw text when it could not be
    decoded.
    """

    type: Literal["message_log"] = "message_log"
    direction: Direction
    message: Any


class NotificationSentEvent(BaseModel):
    type: Literal["notification_sent"] = "notification_sent"
    method: str


class ObserverErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str


class SendNotificationCommand(BaseModel):
    """Inject a notification onto every terminal connection."""

    type: Literal["send_notification"] = "send_notification"
    method: str
    params: dict[str, Any] | list[Any] | None = None
