"""Error taxonomy for the simulator core.

Nothing here is process-fatal. Every error is either converted into a
JSON-RPC error response or logged and absorbed:

- DecodeError: malformed or unsupported frame (becomes a parse error reply)
- DispatchError: a protocol-level failure carrying a JSON-RPC error code
    - MethodNotFound: request for a method outside the catalogue
    - HandlerFailure: a handler raised internally
- DeliveryFailure: sending to one specific connection failed
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .protocol.jsonrpc import JsonRpcError


class SimulatorError(Exception):
    """Base class for simulator errors."""


class DecodeError(SimulatorError):
    """Inbound text is not a well-formed JSON-RPC 2.0 message."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class DispatchError(SimulatorError):
    """Exception for JSON-RPC protocol errors raised during dispatch."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_error(self) -> JsonRpcError:
        """Convert to the wire-level error object."""
        from .protocol.jsonrpc import JsonRpcError

        return JsonRpcError(code=self.code, message=self.message, data=self.data)


class MethodNotFound(DispatchError):
    """No handler is registered for the requested method."""

    def __init__(self, method: str) -> None:
        from .protocol.jsonrpc import JsonRpcErrorCode

        super().__init__(JsonRpcErrorCode.METHOD_NOT_FOUND, "Method not found", method)
        self.method = method


class HandlerFailure(DispatchError):
    """A handler raised while processing a message."""

    def __init__(self, method: str, cause: BaseException) -> None:
        from .protocol.jsonrpc import JsonRpcErrorCode

        super().__init__(JsonRpcErrorCode.INTERNAL_ERROR, "Internal error", str(cause))
        self.method = method
        self.cause = cause


class DeliveryFailure(SimulatorError):
    """A frame could not be handed to a connection."""

    def __init__(self, connection_id: str, reason: str) -> None:
        super().__init__(f"Delivery to {connection_id} failed: {reason}")
        self.connection_id = connection_id
        self.reason = reason
