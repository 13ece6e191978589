"""Teller Simulator CLI.

Commands:
    teller-simulator serve   - Run the simulator server
    teller-simulator health  - Check server health
    teller-simulator probe   - Log in and drive a scripted terminal session
"""

from __future__ import annotations

import asyncio
import json
import os
import sys

import click
import httpx

from .auth import encrypt
from .config import ENV_PREFIX, SimulatorConfig, configure_logging

# Requests sent by ``probe``, in order
PROBE_SCRIPT = [
    ("AvailabilityController.ping", {}),
    ("SessionController.create_session", {"selfservice": True}),
    ("SessionController.request_help", {"skills": [1]}),
    ("CardReaderController.read_card", {}),
    ("CashDispenserController.dispense", {"amount": 100, "notes": [{"denomination": 20, "count": 5}]}),
]


@click.group(invoke_without_command=True)
@click.pass_context
def main(ctx: click.Context) -> None:
    """Teller Simulator - mock teller-assisted terminal backend."""
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# =============================================================================
# Server Commands
# =============================================================================


@main.command()
@click.option("--host", default=None, help="Host to bind to [default: 127.0.0.1]")
@click.option("--port", type=int, default=None, help="Port to bind to [default: 8080]")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False), help="YAML config file")
@click.option("--latency-scale", type=float, default=None, help="Multiplier for simulated device delays")
@click.option("--require-login", is_flag=True, help="Require a /login token on terminal connections")
@click.option("--static-dir", type=click.Path(exists=True, file_okay=False), help="Serve this directory at /admin")
@click.option("--debug", is_flag=True, help="Log every frame")
def serve(
    host: str | None,
    port: int | None,
    config_path: str | None,
    latency_scale: float | None,
    require_login: bool,
    static_dir: str | None,
    debug: bool,
) -> None:
    """Run the simulator server."""
    import uvicorn

    # CLI options reach the app factory as environment overrides
    overrides = {
        "CONFIG": config_path,
        "HOST": host,
        "PORT": port,
        "LATENCY_SCALE": latency_scale,
        "STATIC_DIR": static_dir,
        "REQUIRE_LOGIN": "1" if require_login else None,
        "DEBUG": "1" if debug else None,
    }
    for name, value in overrides.items():
        if value is not None:
            os.environ[f"{ENV_PREFIX}{name}"] = str(value)

    config = SimulatorConfig.load()
    configure_logging(config.debug)

    click.echo(f"Starting Teller Simulator on http://{config.host}:{config.port}", err=True)
    click.echo(f"  Terminal endpoint: ws://{config.host}:{config.port}{config.terminal_path}", err=True)
    click.echo(f"  Observer endpoint: ws://{config.host}:{config.port}{config.observer_path}", err=True)
    if config.static_dir:
        click.echo(f"  Admin UI: http://{config.host}:{config.port}/admin/", err=True)
    click.echo("Press Ctrl+C to stop", err=True)

    uvicorn.run(
        "teller_simulator.app:create_app",
        factory=True,
        host=config.host,
        port=config.port,
        log_config=None,
    )


@main.command()
@click.option("--url", default="http://localhost:8080", help="Server URL")
def health(url: str) -> None:
    """Check server health."""

    async def check() -> None:
        try:
            async with httpx.AsyncClient() as client:
                response = await client.get(f"{url}/health")
                if response.status_code == 200:
                    data = response.json()
                    click.echo(f"Server is healthy: {data}")
                else:
                    click.echo(f"Server returned {response.status_code}", err=True)
                    sys.exit(1)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)

    asyncio.run(check())


# =============================================================================
# Probe Command (scripted terminal)
# =============================================================================


@main.command()
@click.option("--url", default="http://localhost:8080", help="Server URL")
@click.option("--username", default="IK385001_T2", help="Terminal username")
@click.option("--password", default="IK385001_T2", help="Terminal password")
@click.option("--key", default=SimulatorConfig.encryption_key, help="Shared credential key")
@click.option("--path", default=SimulatorConfig.terminal_path, help="Terminal WebSocket path")
@click.option("--wait", default=5.0, help="Seconds to keep listening for notifications")
def probe(url: str, username: str, password: str, key: str, path: str, wait: float) -> None:
    """Log in, run a short terminal session and print every frame received."""

    async def login(client: httpx.AsyncClient) -> str | None:
        response = await client.post(
            f"{url}/login",
            json={
                "un_key_cookie": encrypt(username, key),
                "ps_key_cookie": encrypt(password, key),
                "ip": "127.0.0.1",
            },
        )
        if response.status_code != 200:
            click.echo(f"Login failed ({response.status_code}): {response.text}", err=True)
            return None
        token = response.json()["data"]["token"]
        click.echo(f"Logged in, token {token[:16]}...")
        return token

    async def session(token: str) -> None:
        import websockets

        ws_url = url.replace("http://", "ws://").replace("https://", "wss://")
        async with websockets.connect(f"{ws_url}{path}?token={token}") as websocket:
            for request_id, (method, params) in enumerate(PROBE_SCRIPT, start=1):
                frame = {"jsonrpc": "2.0", "method": method, "params": params, "id": request_id}
                await websocket.send(json.dumps(frame))
                click.echo(f"→ {method}")

            loop = asyncio.get_running_loop()
            deadline = loop.time() + wait
            while (remaining := deadline - loop.time()) > 0:
                try:
                    data = await asyncio.wait_for(websocket.recv(), timeout=remaining)
                except TimeoutError:
                    break
                click.echo(f"← {data}")

    async def run() -> None:
        try:
            async with httpx.AsyncClient() as client:
                token = await login(client)
        except httpx.ConnectError:
            click.echo(f"Cannot connect to server at {url}", err=True)
            sys.exit(1)
        if token is None:
            sys.exit(1)
        await session(token)

    asyncio.run(run())


if __name__ == "__main__":
    main()
