"""HTTP and WebSocket routes."""

from .health import health_routes
from .http import http_routes, resource_routes
from .websocket import build_websocket_routes

__all__ = [
    "build_websocket_routes",
    "health_routes",
    "http_routes",
    "resource_routes",
]
