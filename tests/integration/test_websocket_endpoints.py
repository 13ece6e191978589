"""Integration tests for the terminal and observer WebSocket endpoints.

Drives the real Starlette application through TestClient, covering:
- Connection greeting and client counts
- Request/response and deferred notifications end to end
- Observer mirroring and notification injection
- Login enforcement on the terminal endpoint
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from teller_simulator.app import create_app
from teller_simulator.auth import encrypt
from teller_simulator.config import SimulatorConfig

TERMINAL = "/ws/tellerapp/client"
OBSERVER = "/ws/admin"


@pytest.fixture
def config() -> SimulatorConfig:
    return SimulatorConfig(latency_scale=0.01)


@pytest.fixture
def client(config: SimulatorConfig) -> Iterator[TestClient]:
    """Client sharing one event loop across all sockets, lifespan included."""
    with TestClient(create_app(config)) as client:
        yield client


def rpc(method: str, request_id: Any, params: Any = None) -> dict[str, Any]:
    frame: dict[str, Any] = {"jsonrpc": "2.0", "method": method, "id": request_id}
    if params is not None:
        frame["params"] = params
    return frame


def login_token(client: TestClient, config: SimulatorConfig) -> str:
    response = client.post(
        "/login",
        json={
            "un_key_cookie": encrypt(config.credentials.username, config.encryption_key),
            "ps_key_cookie": encrypt(config.credentials.password, config.encryption_key),
            "ip": "127.0.0.1",
        },
    )
    return response.json()["data"]["token"]


# =============================================================================
# Terminal endpoint
# =============================================================================


class TestTerminalEndpoint:
    """Tests for the terminal JSON-RPC endpoint."""

    def test_connection_established_on_connect(self, client: TestClient) -> None:
        """The first frame a terminal sees is connection_established."""
        with client.websocket_connect(TERMINAL) as ws:
            greeting = ws.receive_json()

        assert greeting["jsonrpc"] == "2.0"
        assert greeting["method"] == "connection_established"
        assert greeting["params"]["success"] is True
        assert "timestamp" in greeting["params"]
        assert "id" not in greeting

    def test_ping(self, client: TestClient) -> None:
        """A ping request is answered with success."""
        with client.websocket_connect(TERMINAL) as ws:
            ws.receive_json()
            ws.send_json(rpc("AvailabilityController.ping", 1, {}))

            assert ws.receive_json() == {"jsonrpc": "2.0", "id": 1, "result": {"success": True}}

    def test_request_help_then_call_established(self, client: TestClient) -> None:
        """request_help is acknowledged and later followed by call_established."""
        with client.websocket_connect(TERMINAL) as ws:
            ws.receive_json()
            ws.send_json(rpc("SessionController.request_help", 2, {"skills": [1]}))

            assert ws.receive_json() == {"jsonrpc": "2.0", "id": 2, "result": {"success": True}}
            notification = ws.receive_json()

        assert notification == {
            "jsonrpc": "2.0",
            "method": "SessionController.call_established",
            "params": {"call": {"id": 2001, "teller": 100}},
        }

    def test_parse_error(self, client: TestClient) -> None:
        """Garbage gets a parse error with a null id and the socket stays open."""
        with client.websocket_connect(TERMINAL) as ws:
            ws.receive_json()
            ws.send_text("{not json")

            reply = ws.receive_json()
            assert reply["id"] is None
            assert reply["error"]["code"] == -32700

            ws.send_json(rpc("AvailabilityController.ping", 2))
            assert ws.receive_json()["id"] == 2

    def test_unknown_notification_then_request(self, client: TestClient) -> None:
        """An unknown notification produces no frame; the next reply is for the next request."""
        with client.websocket_connect(TERMINAL) as ws:
            ws.receive_json()
            ws.send_json({"jsonrpc": "2.0", "method": "Foo.bar"})
            ws.send_json(rpc("Foo.baz", 3))

            reply = ws.receive_json()

        assert reply["id"] == 3
        assert reply["error"] == {"code": -32601, "message": "Method not found", "data": "Foo.baz"}

    def test_session_ids_shared_across_terminals(self, client: TestClient) -> None:
        """Two terminals draw from the same session sequence."""
        with client.websocket_connect(TERMINAL) as first, client.websocket_connect(TERMINAL) as second:
            first.receive_json()
            second.receive_json()

            first.send_json(rpc("SessionController.create_session", 1, {"selfservice": True}))
            a = first.receive_json()["result"]["session_id"]
            second.send_json(rpc("SessionController.create_session", 1, {"selfservice": True}))
            b = second.receive_json()["result"]["session_id"]

        assert (a, b) == (1001, 1002)


# =============================================================================
# Observer endpoint
# =============================================================================


class TestObserverEndpoint:
    """Tests for the observer endpoint."""

    def test_observer_sees_count_and_traffic(self, client: TestClient) -> None:
        """Observers get counts on connect/disconnect and mirrors of every frame."""
        with client.websocket_connect(OBSERVER) as observer:
            assert observer.receive_json() == {"type": "client_count", "count": 0}

            with client.websocket_connect(TERMINAL) as terminal:
                terminal.receive_json()
                assert observer.receive_json() == {"type": "client_count", "count": 1}

                greeting = observer.receive_json()
                assert greeting["type"] == "message_log"
                assert greeting["direction"] == "outgoing"
                assert greeting["message"]["method"] == "connection_established"

                terminal.send_json(rpc("AvailabilityController.ping", 1, {}))
                terminal.receive_json()

                incoming = observer.receive_json()
                outgoing = observer.receive_json()
                assert incoming == {
                    "type": "message_log",
                    "direction": "incoming",
                    "message": rpc("AvailabilityController.ping", 1, {}),
                }
                assert outgoing == {
                    "type": "message_log",
                    "direction": "outgoing",
                    "message": {"jsonrpc": "2.0", "id": 1, "result": {"success": True}},
                }

            assert observer.receive_json() == {"type": "client_count", "count": 0}

    def test_inject_notification(self, client: TestClient) -> None:
        """send_notification reaches the terminal and is acknowledged to the observer."""
        with client.websocket_connect(OBSERVER) as observer, client.websocket_connect(TERMINAL) as terminal:
            terminal.receive_json()
            observer.receive_json()  # client_count 0
            observer.receive_json()  # client_count 1
            observer.receive_json()  # connection_established mirror

            observer.send_json(
                {
                    "type": "send_notification",
                    "method": "ChatController.message_received",
                    "params": {"from": "teller", "message": "hi"},
                }
            )

            assert terminal.receive_json() == {
                "jsonrpc": "2.0",
                "method": "ChatController.message_received",
                "params": {"from": "teller", "message": "hi"},
            }
            mirror = observer.receive_json()
            ack = observer.receive_json()

        assert mirror["type"] == "message_log"
        assert mirror["direction"] == "outgoing"
        assert ack == {"type": "notification_sent", "method": "ChatController.message_received"}

    def test_bad_command(self, client: TestClient) -> None:
        """Unknown commands are answered with an error event."""
        with client.websocket_connect(OBSERVER) as observer:
            observer.receive_json()
            observer.send_text('{"type":"shutdown"}')

            assert observer.receive_json() == {"type": "error", "error": "Unknown command type: shutdown"}

    def test_pending_notifications_cancelled_on_disconnect(self) -> None:
        """Closing a terminal drops its deferred notifications."""
        app = create_app(SimulatorConfig())
        simulator = app.state.simulator
        with TestClient(app) as client, client.websocket_connect(OBSERVER) as observer:
            observer.receive_json()
            with client.websocket_connect(TERMINAL) as terminal:
                terminal.receive_json()
                terminal.send_json(rpc("CashDispenserController.dispense", 1, {"amount": 20}))
                terminal.receive_json()
                assert simulator.scheduler.pending_count == 1

            # Drain until the disconnect count arrives; it is published after cancellation
            while observer.receive_json() != {"type": "client_count", "count": 0}:
                pass

        assert simulator.scheduler.pending_count == 0


# =============================================================================
# Login enforcement
# =============================================================================


class TestRequireLogin:
    """Tests for require_login."""

    @pytest.fixture
    def config(self) -> SimulatorConfig:
        return SimulatorConfig(latency_scale=0.01, require_login=True)

    def test_rejected_without_token(self, client: TestClient) -> None:
        """No token closes the socket with 4001."""
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect(TERMINAL) as ws:
                ws.receive_json()

        assert exc_info.value.code == 4001

    def test_rejected_with_unknown_token(self, client: TestClient) -> None:
        """A token that was never issued is refused."""
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect(f"{TERMINAL}?token=forged") as ws:
                ws.receive_json()

    def test_accepted_with_query_token(self, client: TestClient, config: SimulatorConfig) -> None:
        """A token from /login in the query string is accepted."""
        token = login_token(client, config)

        with client.websocket_connect(f"{TERMINAL}?token={token}") as ws:
            assert ws.receive_json()["method"] == "connection_established"

    def test_accepted_with_header_token(self, client: TestClient, config: SimulatorConfig) -> None:
        """A token in X-CSRFToken is accepted."""
        token = login_token(client, config)

        with client.websocket_connect(TERMINAL, headers={"X-CSRFToken": token}) as ws:
            assert ws.receive_json()["method"] == "connection_established"

    def test_observer_needs_no_token(self, client: TestClient) -> None:
        """The observer endpoint is not gated."""
        with client.websocket_connect(OBSERVER) as observer:
            assert observer.receive_json()["type"] == "client_count"
