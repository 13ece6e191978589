"""Wire protocols spoken by the simulator.

- jsonrpc: JSON-RPC 2.0 codec used on terminal connections
- methods: closed catalogue of terminal methods and server notifications
- observer: typed events and commands exchanged with observers
"""

from .jsonrpc import (
    JSONRPC_VERSION,
    JsonRpcError,
    JsonRpcErrorCode,
    JsonRpcErrorResponse,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    Message,
    create_error,
    create_notification,
    create_request,
    create_response,
    decode,
    encode,
)
from .methods import Method, ServerNotification

__all__ = [
    "JSONRPC_VERSION",
    "JsonRpcError",
    "JsonRpcErrorCode",
    "JsonRpcErrorResponse",
    "JsonRpcNotification",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "Message",
    "Method",
    "ServerNotification",
    "create_error",
    "create_notification",
    "create_request",
    "create_response",
    "decode",
    "encode",
]
