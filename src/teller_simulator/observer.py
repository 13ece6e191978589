"""Observer channel.

Fan-out sink for monitoring connections: mirrors every terminal frame in
both directions and keeps observers informed of the terminal count.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from .connection import ObserverConnection
from .errors import DeliveryFailure
from .protocol.jsonrpc import Message
from .protocol.observer import ClientCountEvent, Direction, MessageLogEvent
from .registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class ObserverChannel:
    """Publishes observer events through the connection registry."""

    def __init__(self, registry: ConnectionRegistry) -> None:
        self._registry = registry

    def publish(self, event: BaseModel) -> int:
        """Broadcast an event to every observer."""
        return self._registry.broadcast_to_observers(event.model_dump(mode="json"))

    def mirror(self, direction: Direction, message: Message | str | Any) -> int:
        """Publish a copy of one terminal frame.

        Args:
            direction: "incoming" for frames from a terminal, "outgoing" for frames to one
            message: The decoded message, or the raw text if it could not be decoded
        """
        payload = message.to_dict() if hasattr(message, "to_dict") else message
        return self.publish(MessageLogEvent(direction=direction, message=payload))

    def client_count_event(self) -> ClientCountEvent:
        return ClientCountEvent(count=self._registry.terminal_count())

    def announce_client_count(self) -> int:
        """Tell every observer how many terminals are connected."""
        return self.publish(self.client_count_event())

    def greet(self, observer: ObserverConnection) -> None:
        """Send the current terminal count to a newly connected observer."""
        try:
            observer.send_json(self.client_count_event().model_dump(mode="json"))
        except DeliveryFailure as e:
            logger.debug(f"Could not greet observer: {e}")
