"""WebSocket connection wrappers.

Every connection owns an outbound queue drained by a single writer task.
The dispatch path, deferred-notification timers and broadcasts only enqueue
frames, so the underlying socket never sees concurrent writers and frames
leave in the order they were enqueued.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from starlette.websockets import WebSocket, WebSocketState

from .errors import DeliveryFailure

if TYPE_CHECKING:
    from .scheduler import DeferredNotification

logger = logging.getLogger(__name__)


class Connection:
    """A single WebSocket peer with a serialized outbound channel."""

    kind = "connection"

    def __init__(self, websocket: WebSocket, remote_address: str | None = None) -> None:
        self.websocket = websocket
        self.connection_id = f"{self.kind}_{uuid.uuid4().hex[:12]}"
        self.remote_address = remote_address or _remote_address(websocket)
        self.created_at = datetime.now(UTC)
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._writer: asyncio.Task[None] | None = None
        self._closed = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.connection_id} from {self.remote_address}>"

    @property
    def is_open(self) -> bool:
        return not self._closed

    def start(self) -> None:
        """Start the writer task. Must be called from the event loop."""
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name=f"writer-{self.connection_id}")

    def send_text(self, text: str) -> None:
        """Queue a frame for delivery.

        Raises:
            DeliveryFailure: If the connection is already closed
        """
        if self._closed:
            raise DeliveryFailure(self.connection_id, "connection closed")
        self._outbox.put_nowait(text)

    def send_json(self, payload: Any) -> None:
        """Queue a JSON-serializable payload for delivery."""
        self.send_text(json.dumps(payload))

    async def close(self) -> None:
        """Stop accepting frames, flush what is queued and stop the writer."""
        if self._closed:
            return
        self._closed = True
        self._outbox.put_nowait(None)
        if self._writer is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._writer

    async def _drain(self) -> None:
        while True:
            text = await self._outbox.get()
            if text is None:
                break
            try:
                if self.websocket.client_state != WebSocketState.CONNECTED:
                    logger.debug(f"Dropping frame for {self.connection_id}: socket not connected")
                    continue
                await self.websocket.send_text(text)
            except Exception as e:
                logger.warning(f"Send to {self.connection_id} failed: {e}")
                self._closed = True
                break


class TerminalConnection(Connection):
    """A simulated self-service terminal.

    Tracks the deferred notifications scheduled against it so they can be
    cancelled when the terminal disconnects.
    """

    kind = "terminal"

    def __init__(self, websocket: WebSocket, remote_address: str | None = None) -> None:
        super().__init__(websocket, remote_address)
        self.pending: set[DeferredNotification] = set()


class ObserverConnection(Connection):
    """A monitoring/control channel mirroring all terminal traffic."""

    kind = "observer"


def _remote_address(websocket: WebSocket) -> str:
    client = websocket.client
    if client is None:
        return "unknown"
    return f"{client.host}:{client.port}"
