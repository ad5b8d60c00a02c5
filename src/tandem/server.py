"""PeerServer — serves a CapabilityRegistry over a PeerSession.

Wires the catalog listing and invocation methods onto the session and runs
until the transport closes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tandem.protocol.errors import InvalidArgumentsError
from tandem.protocol.models import dump
from tandem.protocol.session import PeerSession
from tandem.registry import CapabilityKind, CapabilityRegistry
from tandem.utils.telemetry import ATTR_TOOL_NAME, get_tracer

if TYPE_CHECKING:
    from tandem.protocol.models import Implementation
    from tandem.protocol.transport import Transport

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class PeerServer:
    """Exposes *registry* to the host on the other end of *session*.

    Usage::

        session = PeerSession(StreamTransport.from_stdio())
        registry = build_user_registry(store, session)
        await PeerServer(session, registry).serve()
    """

    def __init__(self, session: PeerSession, registry: CapabilityRegistry) -> None:
        self.session = session
        self.registry = registry
        # The advertised summary must be in place before the handshake.
        session.capabilities = registry.capabilities()

        session.register_handler("tools/list", self._list_tools)
        session.register_handler("tools/call", self._call_tool)
        session.register_handler("resources/list", self._list_resources)
        session.register_handler("resources/templates/list", self._list_resource_templates)
        session.register_handler("resources/read", self._read_resource)
        session.register_handler("prompts/list", self._list_prompts)
        session.register_handler("prompts/get", self._get_prompt)

    @classmethod
    def over(
        cls,
        transport: Transport,
        registry: CapabilityRegistry,
        *,
        info: Implementation | None = None,
        request_timeout: float | None = None,
    ) -> PeerServer:
        """Build a server together with its session."""
        session = PeerSession(transport, info=info, request_timeout=request_timeout)
        return cls(session, registry)

    async def start(self) -> None:
        await self.session.start()

    async def serve(self) -> None:
        """Start the session and block until the host disconnects."""
        await self.start()
        logger.info("peer: serving %s", ", ".join(sorted(self.session.capabilities.kinds())))
        await self.session.wait_closed()

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _list_tools(self, _params: dict[str, Any]) -> dict[str, Any]:
        return {"tools": [dump(d) for d in self.registry.list(CapabilityKind.TOOL)]}

    def _list_resources(self, _params: dict[str, Any]) -> dict[str, Any]:
        return {"resources": [dump(d) for d in self.registry.list(CapabilityKind.RESOURCE)]}

    def _list_resource_templates(self, _params: dict[str, Any]) -> dict[str, Any]:
        templates = self.registry.list(CapabilityKind.RESOURCE_TEMPLATE)
        return {"resourceTemplates": [dump(d) for d in templates]}

    def _list_prompts(self, _params: dict[str, Any]) -> dict[str, Any]:
        return {"prompts": [dump(d) for d in self.registry.list(CapabilityKind.PROMPT)]}

    async def _call_tool(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name", "tools/call")
        with _tracer.start_as_current_span("tool.call") as span:
            span.set_attribute(ATTR_TOOL_NAME, name)
            result = await self.registry.invoke(
                CapabilityKind.TOOL, name, _arguments(params, "tools/call")
            )
        return dump(result)

    async def _read_resource(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = _require_str(params, "uri", "resources/read")
        return dump(await self.registry.read_resource(uri))

    async def _get_prompt(self, params: dict[str, Any]) -> dict[str, Any]:
        name = _require_str(params, "name", "prompts/get")
        result = await self.registry.invoke(
            CapabilityKind.PROMPT, name, _arguments(params, "prompts/get")
        )
        return dump(result)


def _require_str(params: dict[str, Any], key: str, method: str) -> str:
    value = params.get(key)
    if not isinstance(value, str) or not value:
        raise InvalidArgumentsError(method, f"'{key}' must be a non-empty string")
    return value


def _arguments(params: dict[str, Any], method: str) -> dict[str, Any]:
    arguments = params.get("arguments")
    if arguments is None:
        return {}
    if not isinstance(arguments, dict):
        raise InvalidArgumentsError(method, "'arguments' must be an object")
    return arguments
