"""HTTP collaborators used by terminals around the WebSocket channel.

- POST /login - exchange obfuscated credentials for a token
- POST /teller/uploadCallImage - mock signature/call image upload
- GET /{path} - mock resource download

Upload and download require the token from /login in the ``X-CSRFToken``
header.
"""

from __future__ import annotations

import base64
import logging
from datetime import UTC, datetime
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from ..auth import decrypt
from ..handlers import BLANK_PNG_BASE64
from ..simulator import TellerSimulator

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-csrftoken"


def _simulator(request: Request) -> TellerSimulator:
    return request.app.state.simulator


def _failed(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"result": "Failed", "message": message}, status_code=status_code)


async def _json_body(request: Request) -> dict[str, Any] | None:
    try:
        body = await request.json()
    except ValueError:
        return None
    return body if isinstance(body, dict) else None


def _authorized(request: Request) -> bool:
    return _simulator(request).logins.is_valid(request.headers.get(TOKEN_HEADER))


async def login(request: Request) -> JSONResponse:
    """Authenticate a terminal.

    Body: ``{"un_key_cookie": ..., "ps_key_cookie": ..., "ip": ...}``
    """
    simulator = _simulator(request)
    body = await _json_body(request) or {}

    un_key = body.get("un_key_cookie")
    ps_key = body.get("ps_key_cookie")
    if not isinstance(un_key, str) or not isinstance(ps_key, str) or not un_key or not ps_key:
        logger.warning("Login rejected: missing credentials")
        return _failed("Missing credentials", 400)

    key = simulator.config.encryption_key
    username = decrypt(un_key, key)
    password = decrypt(ps_key, key)
    expected = simulator.config.credentials

    if username != expected.username or password != expected.password:
        logger.warning(f"Invalid credentials for user: {username}")
        return _failed("Invalid credentials", 401)

    token, record = simulator.logins.issue(username)
    logger.info(f"Login successful for user: {username} from {body.get('ip')}")
    return JSONResponse(
        {"result": "Success", "data": {"token": token, "session_key": record.session_key}}
    )


async def upload_call_image(request: Request) -> JSONResponse:
    """Accept an image and answer with a fabricated stored-file record."""
    if not _authorized(request):
        logger.warning("Upload rejected: invalid or missing token")
        return _failed("Unauthorized", 401)

    body = await _json_body(request) or {}
    if not body.get("image"):
        return _failed("Missing image data", 400)

    image_id = _simulator(request).counters.image.next()
    logger.info(f"Image uploaded, id: {image_id}, description: {body.get('description')}")
    return JSONResponse(
        {
            "result": "Success",
            "data": {
                "id": image_id,
                "image": {
                    "id": image_id,
                    "creation_date": datetime.now(UTC).isoformat(),
                    "file": f"/media/call_images/{image_id}.png",
                },
            },
        }
    )


async def download_resource(request: Request) -> Response:
    """Serve mock content for any other path, typed by its extension."""
    path = request.url.path
    if not _authorized(request):
        logger.warning(f"Download of {path} rejected: invalid or missing token")
        return _failed("Unauthorized", 401)

    if ".json" in path:
        return JSONResponse(
            {"result": "Success", "data": {"message": "Mock resource data", "path": path}}
        )
    if ".png" in path or ".jpg" in path:
        return Response(base64.b64decode(BLANK_PNG_BASE64), media_type="image/png")
    return PlainTextResponse(f"Mock resource content for: {path}")


http_routes = [
    Route("/login", login, methods=["POST"]),
    Route("/teller/uploadCallImage", upload_call_image, methods=["POST"]),
]

# Catch-all; must be mounted after every other route
resource_routes = [
    Route("/{path:path}", download_resource, methods=["GET"]),
]
