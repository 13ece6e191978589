"""Simulator configuration.

Settings come from, lowest to highest precedence:
- built-in defaults
- an optional YAML file (``--config`` / ``TELLER_SIM_CONFIG``)
- ``TELLER_SIM_*`` environment variables
- CLI options (applied by the caller)
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

ENV_PREFIX = "TELLER_SIM_"

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass
class Credentials:
    """The single terminal login accepted by /login."""

    username: str = "IK385001_T2"
    password: str = "IK385001_T2"


@dataclass
class MockData:
    """Reference data served by the simulated devices."""

    session_id_start: int = 1001
    call_id_start: int = 2001
    image_id_start: int = 1
    teller_id: int = 100
    teller_first_name: str = "John"
    teller_last_name: str = "Doe"
    teller_username: str = "john.doe"


@dataclass
class SimulatorConfig:
    """Configuration for the simulator server."""

    host: str = "127.0.0.1"
    port: int = 8080
    terminal_path: str = "/ws/tellerapp/client"
    observer_path: str = "/ws/admin"
    # Shared key used by terminals to XOR-obfuscate login credentials
    encryption_key: str = "/A?D(G+KbPeSgVkYp3s6v9y$B&E)H@Mc"
    credentials: Credentials = field(default_factory=Credentials)
    mock_data: MockData = field(default_factory=MockData)
    # Multiplier for simulated device latency (0 fires deferred notifications immediately)
    latency_scale: float = 1.0
    require_login: bool = False
    static_dir: str | None = None
    debug: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> SimulatorConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {path} must contain a mapping")
        logger.info(f"Loaded configuration from {path}")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SimulatorConfig:
        """Build a config from a plain mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            if key == "credentials":
                value = Credentials(**(value or {}))
            elif key == "mock_data":
                value = MockData(**(value or {}))
            values[key] = value
        return cls(**values)

    @classmethod
    def load(cls, path: str | Path | None = None) -> SimulatorConfig:
        """Load defaults, then the YAML file, then environment overrides."""
        path = path or os.environ.get(f"{ENV_PREFIX}CONFIG")
        config = cls.from_file(path) if path else cls()
        return config.with_env_overrides()

    def with_env_overrides(self, environ: dict[str, str] | None = None) -> SimulatorConfig:
        """Return a copy with ``TELLER_SIM_*`` environment variables applied."""
        env = os.environ if environ is None else environ
        overrides: dict[str, Any] = {}

        for name, convert in (
            ("host", str),
            ("port", int),
            ("terminal_path", str),
            ("observer_path", str),
            ("encryption_key", str),
            ("latency_scale", float),
            ("static_dir", str),
        ):
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw:
                overrides[name] = convert(raw)

        for name in ("require_login", "debug"):
            raw = env.get(f"{ENV_PREFIX}{name.upper()}")
            if raw:
                overrides[name] = raw.lower() in _TRUE_VALUES

        username = env.get(f"{ENV_PREFIX}USERNAME")
        password = env.get(f"{ENV_PREFIX}PASSWORD")
        if username or password:
            overrides["credentials"] = Credentials(
                username=username or self.credentials.username,
                password=password or self.credentials.password,
            )

        return replace(self, **overrides) if overrides else self

    def scaled_delay(self, delay_ms: int) -> int:
        """Apply the latency scale to a simulated device delay."""
        return max(0, int(delay_ms * self.latency_scale))


def configure_logging(debug: bool = False) -> None:
    """Route all log output to a single stderr handler."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(stderr_handler)
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
