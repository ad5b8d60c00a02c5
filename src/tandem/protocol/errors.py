"""Error types for the protocol layer.

Every error carries the JSON-RPC ``code`` it is reported with when it has to
cross the transport, so handlers can simply raise and the dispatcher turns
the exception into an error envelope.
"""

from __future__ import annotations

from typing import Any

# Standard JSON-RPC 2.0 codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Implementation-defined codes (server error range)
CONNECTION_CLOSED = -32000
REQUEST_TIMEOUT = -32001
NOT_FOUND = -32002
SESSION_NOT_READY = -32003
SESSION_CLOSED = -32004
CAPABILITY_NOT_SUPPORTED = -32005


class ProtocolError(Exception):
    """Base error for all protocol-layer failures."""

    code: int = INTERNAL_ERROR

    def __init__(self, message: str, *, data: Any = None) -> None:
        self.message = message
        self.data = data
        super().__init__(message)


class MalformedEnvelopeError(ProtocolError):
    """A message could not be decoded into a valid envelope."""

    code = INVALID_REQUEST

    def __init__(
        self,
        detail: str,
        *,
        code: int = INVALID_REQUEST,
        request_id: int | str | None = None,
        response: bool = False,
    ) -> None:
        self.code = code
        self.request_id = request_id
        # Set when the envelope was shaped like a response; it is never answered.
        self.response = response
        super().__init__(f"Malformed envelope: {detail}")


class InvalidRequestError(ProtocolError):
    """A well-formed request that is not valid in the current state."""

    code = INVALID_REQUEST


class MethodNotFoundError(ProtocolError):
    """No handler is registered for the requested method."""

    code = METHOD_NOT_FOUND

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Method not found: {method}")


class NotFoundError(ProtocolError):
    """No tool, resource, or prompt matches the requested name."""

    code = NOT_FOUND

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind}: {name}")


class InvalidArgumentsError(ProtocolError):
    """Arguments do not satisfy the capability's declared schema."""

    code = INVALID_PARAMS

    def __init__(self, name: str, detail: str = "") -> None:
        self.name = name
        self.detail = detail
        super().__init__(
            f"Invalid arguments for {name}" + (f": {detail}" if detail else "")
        )


class MissingTemplateParameterError(ProtocolError):
    """A URI template placeholder was left unfilled."""

    code = INVALID_PARAMS

    def __init__(self, template: str, missing: list[str]) -> None:
        self.template = template
        self.missing = missing
        super().__init__(
            f"Missing template parameter(s) for {template}: {', '.join(missing)}"
        )


class HandlerFailureError(ProtocolError):
    """A registered handler raised; only its message crosses the wire."""

    code = INTERNAL_ERROR


class TransportClosedError(ProtocolError):
    """The underlying stream closed before the operation completed."""

    code = CONNECTION_CLOSED

    def __init__(self, message: str = "Transport closed") -> None:
        super().__init__(message)


class RequestTimedOutError(ProtocolError):
    """No response arrived within the request timeout."""

    code = REQUEST_TIMEOUT

    def __init__(self, method: str, timeout: float) -> None:
        self.method = method
        self.timeout = timeout
        super().__init__(f"Request {method} timed out after {timeout}s")


class SessionNotReadyError(ProtocolError):
    """An operation was attempted before capability negotiation completed."""

    code = SESSION_NOT_READY

    def __init__(self, method: str) -> None:
        self.method = method
        super().__init__(f"Session not ready for {method}")


class SessionClosedError(ProtocolError):
    """The session has been closed; no further operations are possible."""

    code = SESSION_CLOSED

    def __init__(self, message: str = "Session closed") -> None:
        super().__init__(message)


class CapabilityNotSupportedError(ProtocolError):
    """The other side did not declare the capability this request needs."""

    code = CAPABILITY_NOT_SUPPORTED

    def __init__(self, capability: str) -> None:
        self.capability = capability
        super().__init__(f"Capability not supported by the other side: {capability}")


class RpcError(ProtocolError):
    """An error envelope received in reply to one of our requests."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        super().__init__(message, data=data)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"
