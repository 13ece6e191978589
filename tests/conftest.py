"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any
from unittest.mock import MagicMock

import pytest

from teller_simulator.config import SimulatorConfig
from teller_simulator.connection import Connection, ObserverConnection, TerminalConnection
from teller_simulator.simulator import TellerSimulator


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


@pytest.fixture
def config() -> SimulatorConfig:
    """Config with simulated device latency scaled down to a few milliseconds."""
    return SimulatorConfig(latency_scale=0.01)


@pytest.fixture
def simulator(config: SimulatorConfig) -> TellerSimulator:
    return TellerSimulator(config)


@pytest.fixture
def terminal(simulator: TellerSimulator) -> TerminalConnection:
    """A registered terminal whose writer is never started.

    Frames sent to it stay in its outbound queue; read them with ``sent``.
    """
    connection = TerminalConnection(MagicMock(), remote_address="127.0.0.1:50001")
    simulator.registry.register_terminal(connection)
    return connection


@pytest.fixture
def observer(simulator: TellerSimulator) -> ObserverConnection:
    """A registered observer whose writer is never started."""
    connection = ObserverConnection(MagicMock(), remote_address="127.0.0.1:50002")
    simulator.registry.register_observer(connection)
    return connection


@pytest.fixture
def sent() -> Callable[[Connection], list[Any]]:
    """Pop every frame queued on a connection, decoded from JSON."""

    def drain(connection: Connection) -> list[Any]:
        frames = []
        while not connection._outbox.empty():
            text = connection._outbox.get_nowait()
            if text is not None:
                frames.append(json.loads(text))
        return frames

    return drain
