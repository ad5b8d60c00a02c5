"""Protocol layer — transports, codec, dispatcher, and sessions."""

from tandem.protocol.dispatcher import Dispatcher, PendingRequest
from tandem.protocol.errors import (
    CapabilityNotSupportedError,
    InvalidArgumentsError,
    MalformedEnvelopeError,
    MethodNotFoundError,
    MissingTemplateParameterError,
    NotFoundError,
    ProtocolError,
    RequestTimedOutError,
    RpcError,
    SessionClosedError,
    SessionNotReadyError,
    TransportClosedError,
)
from tandem.protocol.session import HostSession, PeerSession, SessionState
from tandem.protocol.transport import (
    MemoryTransport,
    StdioTransport,
    StreamTransport,
    Transport,
    create_memory_pair,
)

__all__ = [
    "CapabilityNotSupportedError",
    "Dispatcher",
    "HostSession",
    "InvalidArgumentsError",
    "MalformedEnvelopeError",
    "MemoryTransport",
    "MethodNotFoundError",
    "MissingTemplateParameterError",
    "NotFoundError",
    "PeerSession",
    "PendingRequest",
    "ProtocolError",
    "RequestTimedOutError",
    "RpcError",
    "SessionClosedError",
    "SessionNotReadyError",
    "SessionState",
    "StdioTransport",
    "StreamTransport",
    "Transport",
    "TransportClosedError",
    "create_memory_pair",
]
