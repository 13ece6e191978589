"""Health check endpoint."""

from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route


async def health_check(request: Request) -> JSONResponse:
    """Report liveness and how many terminals and observers are connected."""
    return JSONResponse(request.app.state.simulator.health())


health_routes = [
    Route("/health", health_check, methods=["GET"]),
]
