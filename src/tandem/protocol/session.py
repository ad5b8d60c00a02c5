"""Sessions — the negotiation state machine layered over a Dispatcher.

``DISCONNECTED → CONNECTING → NEGOTIATING → READY → CLOSED``

The host drives the handshake with an ``initialize`` request carrying its
capability summary; the peer answers with its own.  Each side sends and
receives exactly one summary, after which ``READY`` is reached and ordinary
traffic (catalog calls, sampling) is allowed in both directions.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from tandem.protocol.dispatcher import DEFAULT_TIMEOUT, Dispatcher
from tandem.protocol.errors import (
    CapabilityNotSupportedError,
    InvalidRequestError,
    SessionClosedError,
    SessionNotReadyError,
)
from tandem.protocol.models import (
    PROTOCOL_VERSION,
    Capabilities,
    CreateMessageParams,
    CreateMessageResult,
    Implementation,
    SamplingMessage,
    dump,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tandem.protocol.dispatcher import NotificationHandler, RequestHandler
    from tandem.protocol.transport import Transport

logger = logging.getLogger(__name__)

LIFECYCLE_METHODS = frozenset({"initialize", "ping"})


class SessionState(str, Enum):
    """Connection lifecycle."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    NEGOTIATING = "negotiating"
    READY = "ready"
    CLOSED = "closed"


class Session:
    """State shared by both ends: the dispatcher plus negotiation guards."""

    side = "session"

    def __init__(
        self,
        transport: Transport,
        *,
        info: Implementation,
        capabilities: Capabilities | None = None,
        request_timeout: float | None = None,
    ) -> None:
        self.info = info
        self.capabilities = capabilities or Capabilities()
        self.peer_info: Implementation | None = None
        self.peer_capabilities: Capabilities | None = None
        self.protocol_version: str | None = None
        self._state = SessionState.DISCONNECTED
        self.dispatcher = Dispatcher(transport, name=self.side, request_timeout=request_timeout)
        self.dispatcher.add_close_callback(self._on_transport_closed)
        self.dispatcher.register_handler("ping", lambda _params: {})

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is SessionState.READY

    def _set_state(self, state: SessionState) -> None:
        if state is not self._state:
            logger.debug("%s: %s -> %s", self.side, self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def register_handler(self, method: str, handler: RequestHandler) -> None:
        """Register *handler*; it is only reachable once the session is ready."""
        if method in LIFECYCLE_METHODS:
            self.dispatcher.register_handler(method, handler)
            return

        def guarded(params: dict[str, Any]) -> Any:
            if not self.ready:
                raise SessionNotReadyError(method)
            return handler(params)

        self.dispatcher.register_handler(method, guarded)

    def register_notification_handler(self, method: str, handler: NotificationHandler) -> None:
        self.dispatcher.register_notification_handler(method, handler)

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    def _check_can_send(self, method: str) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionClosedError()
        if method not in LIFECYCLE_METHODS and not self.ready:
            raise SessionNotReadyError(method)

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> dict[str, Any]:
        """Issue a request through the dispatcher, enforcing session state."""
        self._check_can_send(method)
        return await self.dispatcher.request(method, params, timeout=timeout)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionClosedError()
        await self.dispatcher.notify(method, params)

    async def ping(self) -> None:
        await self.request("ping")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _open(self) -> None:
        if self._state is SessionState.CLOSED:
            raise SessionClosedError()
        if self._state is not SessionState.DISCONNECTED:
            msg = f"{self.side} session already started ({self._state.value})"
            raise RuntimeError(msg)
        self._set_state(SessionState.CONNECTING)
        try:
            await self.dispatcher.transport.connect()
            await self.dispatcher.start()
        except Exception:
            self._set_state(SessionState.CLOSED)
            raise
        self._set_state(SessionState.NEGOTIATING)

    async def close(self) -> None:
        """Close the transport; pending requests are rejected."""
        await self.dispatcher.close()
        self._set_state(SessionState.CLOSED)

    async def wait_closed(self) -> None:
        await self.dispatcher.wait_closed()

    def _on_transport_closed(self) -> None:
        logger.info("%s: session closed", self.side)
        self._set_state(SessionState.CLOSED)


class HostSession(Session):
    """The side that launches the peer and initiates the handshake."""

    side = "host"

    def __init__(
        self,
        transport: Transport,
        *,
        info: Implementation | None = None,
        capabilities: Capabilities | None = None,
        request_timeout: float | None = None,
    ) -> None:
        super().__init__(
            transport,
            info=info or Implementation(name="tandem-host", version="0.1.0"),
            capabilities=capabilities,
            request_timeout=request_timeout,
        )

    async def connect(self) -> None:
        """Connect the transport and run the ``initialize`` handshake."""
        await self._open()
        try:
            result = await self.dispatcher.request(
                "initialize",
                {
                    "protocolVersion": PROTOCOL_VERSION,
                    "capabilities": dump(self.capabilities),
                    "clientInfo": dump(self.info),
                },
            )
            self.protocol_version = str(result.get("protocolVersion", PROTOCOL_VERSION))
            self.peer_capabilities = Capabilities.model_validate(result.get("capabilities", {}))
            self.peer_info = Implementation.model_validate(
                result.get("serverInfo", {"name": "unknown", "version": "0"})
            )
        except Exception:
            await self.close()
            raise
        self._set_state(SessionState.READY)
        logger.info(
            "host: negotiated with %s %s (capabilities: %s)",
            self.peer_info.name,
            self.peer_info.version,
            ", ".join(sorted(self.peer_capabilities.kinds())) or "none",
        )
        await self.notify("notifications/initialized")


class PeerSession(Session):
    """The side launched by the host; answers the handshake."""

    side = "peer"

    def __init__(
        self,
        transport: Transport,
        *,
        info: Implementation | None = None,
        capabilities: Capabilities | None = None,
        request_timeout: float | None = None,
    ) -> None:
        super().__init__(
            transport,
            info=info or Implementation(name="tandem-peer", version="0.1.0"),
            capabilities=capabilities,
            request_timeout=request_timeout,
        )
        self.dispatcher.register_handler("initialize", self._handle_initialize)
        self.dispatcher.register_notification_handler(
            "notifications/initialized", self._handle_initialized
        )

    async def start(self) -> None:
        """Connect the transport and wait for the host's ``initialize``."""
        await self._open()

    def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        if self._state is not SessionState.NEGOTIATING:
            msg = f"Session already initialized ({self._state.value})"
            raise InvalidRequestError(msg)
        self.peer_capabilities = Capabilities.model_validate(params.get("capabilities") or {})
        self.peer_info = Implementation.model_validate(
            params.get("clientInfo") or {"name": "unknown", "version": "0"}
        )
        self.protocol_version = str(params.get("protocolVersion") or PROTOCOL_VERSION)
        self._set_state(SessionState.READY)
        logger.info(
            "peer: negotiated with %s %s (capabilities: %s)",
            self.peer_info.name,
            self.peer_info.version,
            ", ".join(sorted(self.peer_capabilities.kinds())) or "none",
        )
        return {
            "protocolVersion": self.protocol_version,
            "capabilities": dump(self.capabilities),
            "serverInfo": dump(self.info),
        }

    def _handle_initialized(self, _params: dict[str, Any]) -> None:
        logger.debug("peer: host confirmed initialization")

    async def create_message(
        self,
        messages: Sequence[SamplingMessage],
        max_tokens: int,
        *,
        system_prompt: str | None = None,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> CreateMessageResult:
        """Ask the host to generate a message (``sampling/createMessage``).

        Raises:
            CapabilityNotSupportedError: The host did not declare ``sampling``.
        """
        self._check_can_send("sampling/createMessage")
        if self.peer_capabilities is None or not self.peer_capabilities.supports("sampling"):
            raise CapabilityNotSupportedError("sampling")
        params = CreateMessageParams(
            messages=list(messages), max_tokens=max_tokens, system_prompt=system_prompt
        )
        result = await self.request("sampling/createMessage", dump(params), timeout=timeout)
        return CreateMessageResult.model_validate(result)
