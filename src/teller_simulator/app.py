"""Teller Simulator Application.

Creates the Starlette ASGI application with all routes.

Route organization:
- /health - Health check
- /login, /teller/uploadCallImage - HTTP collaborators
- /ws/tellerapp/client - Terminal JSON-RPC endpoint (configurable)
- /ws/admin - Observer endpoint (configurable)
- /admin - Static observer UI (only when static_dir is set)
- /{path} - Mock resource download (catch-all, last)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import BaseRoute, Mount
from starlette.staticfiles import StaticFiles

from .config import SimulatorConfig
from .routes import build_websocket_routes, health_routes, http_routes, resource_routes
from .simulator import TellerSimulator

logger = logging.getLogger(__name__)


def create_app(config: SimulatorConfig | None = None) -> Starlette:
    """Create the simulator application.

    Args:
        config: Server configuration; loaded from file and environment if omitted

    Returns:
        Configured Starlette application
    """
    config = config or SimulatorConfig.load()
    simulator = TellerSimulator(config)

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        logger.info(
            f"Simulator ready: terminals on {config.terminal_path}, observers on {config.observer_path}"
        )
        yield
        simulator.shutdown()

    routes: list[BaseRoute] = []
    routes.extend(health_routes)
    routes.extend(http_routes)
    routes.extend(build_websocket_routes(config))

    if config.static_dir:
        routes.append(Mount("/admin", app=StaticFiles(directory=config.static_dir, html=True), name="admin"))

    routes.extend(resource_routes)

    # CORS middleware for local development
    middleware = [
        Middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        ),
    ]

    app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
    app.state.simulator = simulator
    return app
