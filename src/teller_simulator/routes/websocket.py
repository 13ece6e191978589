"""WebSocket endpoints for terminals and observers.

Terminal protocol (default URL: /ws/tellerapp/client):
1. Client connects (with ``?token=`` or ``X-CSRFToken`` when login is required)
2. Server sends a ``connection_established`` notification
3. Client sends JSON-RPC 2.0 requests and notifications
4. Server replies immediately and later pushes simulated device notifications

Observer protocol (default URL: /ws/admin):
1. Server sends ``client_count`` on connect and whenever a terminal comes or goes
2. Server mirrors every terminal frame as ``message_log``
3. Client may send ``send_notification`` to push a notification to all terminals
"""

from __future__ import annotations

import contextlib
import logging

from starlette.routing import WebSocketRoute
from starlette.websockets import WebSocket, WebSocketState

from ..config import SimulatorConfig
from ..connection import ObserverConnection, TerminalConnection
from ..simulator import TellerSimulator

logger = logging.getLogger(__name__)

UNAUTHORIZED_CLOSE_CODE = 4001


def _simulator(websocket: WebSocket) -> TellerSimulator:
    return websocket.app.state.simulator


async def _close_socket(websocket: WebSocket) -> None:
    if websocket.client_state == WebSocketState.CONNECTED:
        with contextlib.suppress(RuntimeError):
            await websocket.close()


async def terminal_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for simulated terminals."""
    simulator = _simulator(websocket)

    if simulator.config.require_login:
        token = websocket.query_params.get("token") or websocket.headers.get("x-csrftoken")
        if not simulator.logins.is_valid(token):
            logger.warning("Terminal rejected: invalid or missing token")
            await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Unauthorized")
            return

    await websocket.accept()
    connection = TerminalConnection(websocket)
    simulator.open_terminal(connection)

    try:
        async for raw in websocket.iter_text():
            simulator.dispatcher.dispatch(connection, raw)
    except Exception as e:
        logger.exception(f"Terminal {connection.connection_id} error: {e}")
    finally:
        await simulator.close_terminal(connection)
        await _close_socket(websocket)


async def observer_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for monitoring and control clients."""
    simulator = _simulator(websocket)

    await websocket.accept()
    connection = ObserverConnection(websocket)
    simulator.open_observer(connection)

    try:
        async for raw in websocket.iter_text():
            simulator.dispatcher.handle_observer_command(connection, raw)
    except Exception as e:
        logger.exception(f"Observer {connection.connection_id} error: {e}")
    finally:
        await simulator.close_observer(connection)
        await _close_socket(websocket)


def build_websocket_routes(config: SimulatorConfig) -> list[WebSocketRoute]:
    """Routes for both endpoints at their configured paths."""
    return [
        WebSocketRoute(config.terminal_path, terminal_endpoint),
        WebSocketRoute(config.observer_path, observer_endpoint),
    ]
