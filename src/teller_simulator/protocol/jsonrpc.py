"""JSON-RPC 2.0 message codec.

Parses and serializes the four message shapes exchanged with a terminal:

- Request: has ``method`` and a non-null ``id``; expects exactly one reply
- Notification: has ``method`` and no ``id``; never replied to
- Response: has ``id`` and ``result``
- Error response: has ``id`` and ``error``

``decode`` validates the protocol version and that the frame matches exactly
one shape. ``encode`` is its inverse for every message this server produces.
"""

from __future__ import annotations

import json
from typing import Any, Literal, Union

from pydantic import BaseModel, ValidationError

from ..errors import DecodeError

JSONRPC_VERSION = "2.0"

RequestId = Union[str, int, float]


class JsonRpcErrorCode:
    """Standard JSON-RPC 2.0 error codes."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


# =============================================================================
# Message Types
# =============================================================================


class JsonRpcRequest(BaseModel):
    """JSON-RPC 2.0 request."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Any | None = None
    id: RequestId

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            data["params"] = self.params
        data["id"] = self.id
        return data


class JsonRpcNotification(BaseModel):
    """JSON-RPC 2.0 notification (no response expected)."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: Any | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"jsonrpc": self.jsonrpc, "method": self.method}
        if self.params is not None:
            data["params"] = self.params
        return data


class JsonRpcResponse(BaseModel):
    """JSON-RPC 2.0 successful response."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId | None
    result: Any | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"jsonrpc": self.jsonrpc, "id": self.id, "result": self.result}


class JsonRpcError(BaseModel):
    """JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            data["data"] = self.data
        return data


class JsonRpcErrorResponse(BaseModel):
    """JSON-RPC 2.0 error response."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId | None
    error: JsonRpcError

    def to_dict(self) -> dict[str, Any]:
        return {"jsonrpc": self.jsonrpc, "id": self.id, "error": self.error.to_dict()}


Message = Union[JsonRpcRequest, JsonRpcNotification, JsonRpcResponse, JsonRpcErrorResponse]


# =============================================================================
# Factories
# =============================================================================


def create_response(request_id: RequestId | None, result: Any) -> JsonRpcResponse:
    """Create a JSON-RPC 2.0 response."""
    return JsonRpcResponse(id=request_id, result=result)


def create_notification(method: str, params: Any | None = None) -> JsonRpcNotification:
    """Create a JSON-RPC 2.0 notification."""
    return JsonRpcNotification(method=method, params=params)


def create_request(method: str, params: Any | None, request_id: RequestId) -> JsonRpcRequest:
    """Create a JSON-RPC 2.0 request."""
    return JsonRpcRequest(method=method, params=params, id=request_id)


def create_error(
    request_id: RequestId | None,
    code: int,
    message: str,
    data: Any | None = None,
) -> JsonRpcErrorResponse:
    """Create a JSON-RPC 2.0 error response."""
    return JsonRpcErrorResponse(
        id=request_id,
        error=JsonRpcError(code=code, message=message, data=data),
    )


# =============================================================================
# Classification
# =============================================================================


def is_request(message: Message) -> bool:
    """Check if message is a request (has id and method)."""
    return isinstance(message, JsonRpcRequest)


def is_notification(message: Message) -> bool:
    """Check if message is a notification (has method but no id)."""
    return isinstance(message, JsonRpcNotification)


def is_response(message: Message) -> bool:
    """Check if message is a response or error response."""
    return isinstance(message, (JsonRpcResponse, JsonRpcErrorResponse))


# =============================================================================
# Codec
# =============================================================================


def _is_valid_id(value: Any) -> bool:
    # bool is an int subclass but never a valid id
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def decode(raw: str | bytes) -> Message:
    """Parse and validate a JSON-RPC 2.0 frame.

    Args:
        raw: Frame text as received from the socket

    Returns:
        The decoded message

    Raises:
        DecodeError: If the frame is not valid JSON or matches no message shape
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError("Invalid JSON") from e

    if not isinstance(data, dict):
        raise DecodeError("Expected a JSON object")

    if data.get("jsonrpc") != JSONRPC_VERSION:
        raise DecodeError("Invalid JSON-RPC version")

    try:
        if "method" in data:
            return _decode_call(data)
        return _decode_reply(data)
    except ValidationError as e:
        raise DecodeError(f"Invalid message: {e.error_count()} validation error(s)") from e


def _decode_call(data: dict[str, Any]) -> Message:
    if not isinstance(data["method"], str):
        raise DecodeError("Method must be a string")
    if "result" in data or "error" in data:
        raise DecodeError("Message cannot carry both a method and a result or error")

    params = data.get("params")
    if params is not None and not isinstance(params, (dict, list)):
        raise DecodeError("Params must be an object or an array")

    if "id" not in data:
        return JsonRpcNotification.model_validate(data)

    if not _is_valid_id(data["id"]):
        raise DecodeError("Request id must be a string or a number")
    return JsonRpcRequest.model_validate(data)


def _decode_reply(data: dict[str, Any]) -> Message:
    has_result = "result" in data
    has_error = "error" in data

    if has_result and has_error:
        raise DecodeError("Response cannot carry both result and error")
    if not has_result and not has_error:
        raise DecodeError("Message matches no JSON-RPC shape")
    if "id" not in data:
        raise DecodeError("Response is missing an id")

    request_id = data["id"]
    if request_id is not None and not _is_valid_id(request_id):
        raise DecodeError("Response id must be a string, an integer or null")

    if has_result:
        return JsonRpcResponse.model_validate(data)

    error = data["error"]
    if (
        not isinstance(error, dict)
        or isinstance(error.get("code"), bool)
        or not isinstance(error.get("code"), int)
        or not isinstance(error.get("message"), str)
    ):
        raise DecodeError("Error must be an object with an integer code and a string message")
    return JsonRpcErrorResponse.model_validate(data)


def encode(message: Message) -> str:
    """Serialize a message to JSON text."""
    return json.dumps(message.to_dict())
