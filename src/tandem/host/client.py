"""HostClient — typed catalog access to a peer over a HostSession.

Covers discovery (the four ``*/list`` methods) and invocation
(``tools/call``, ``resources/read``, ``prompts/get``).  When a sampling
handler is supplied it is registered before the handshake, so the host
declares ``sampling`` and the peer may call back into it mid-request.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel

from tandem.protocol.models import (
    CallToolResult,
    Capabilities,
    GetPromptResult,
    PromptDescriptor,
    ReadResourceResult,
    ResourceDescriptor,
    ResourceTemplateDescriptor,
    ToolDescriptor,
)
from tandem.protocol.session import HostSession

if TYPE_CHECKING:
    from tandem.protocol.dispatcher import RequestHandler
    from tandem.protocol.models import Implementation
    from tandem.protocol.transport import Transport

logger = logging.getLogger(__name__)


class Catalog(BaseModel):
    """Everything the peer advertises."""

    tools: list[ToolDescriptor] = []
    resources: list[ResourceDescriptor] = []
    resource_templates: list[ResourceTemplateDescriptor] = []
    prompts: list[PromptDescriptor] = []


class HostClient:
    """Async context manager that negotiates with a peer and exposes its catalog.

    Usage::

        transport = StdioTransport(["python", "-m", "tandem", "serve"])
        async with HostClient(transport, sampling_handler=handler) as client:
            catalog = await client.discover()
            result = await client.call_tool("create-random-user", {})
    """

    def __init__(
        self,
        transport: Transport,
        *,
        sampling_handler: RequestHandler | None = None,
        request_timeout: float | None = None,
        info: Implementation | None = None,
    ) -> None:
        capabilities = Capabilities(sampling={}) if sampling_handler is not None else None
        self.session = HostSession(
            transport, info=info, capabilities=capabilities, request_timeout=request_timeout
        )
        if sampling_handler is not None:
            self.session.register_handler("sampling/createMessage", sampling_handler)

    async def __aenter__(self) -> HostClient:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def connect(self) -> None:
        await self.session.connect()

    async def close(self) -> None:
        await self.session.close()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def list_tools(self) -> list[ToolDescriptor]:
        result = await self.session.request("tools/list")
        return [ToolDescriptor.model_validate(raw) for raw in result.get("tools", [])]

    async def list_resources(self) -> list[ResourceDescriptor]:
        result = await self.session.request("resources/list")
        return [ResourceDescriptor.model_validate(raw) for raw in result.get("resources", [])]

    async def list_resource_templates(self) -> list[ResourceTemplateDescriptor]:
        result = await self.session.request("resources/templates/list")
        return [
            ResourceTemplateDescriptor.model_validate(raw)
            for raw in result.get("resourceTemplates", [])
        ]

    async def list_prompts(self) -> list[PromptDescriptor]:
        result = await self.session.request("prompts/list")
        return [PromptDescriptor.model_validate(raw) for raw in result.get("prompts", [])]

    async def discover(self) -> Catalog:
        """Fetch the four catalogs concurrently.

        Kinds the peer did not declare are left empty rather than requested.
        """
        declared = self.session.peer_capabilities or Capabilities()

        async def empty() -> list[Any]:
            return []

        tools, resources, templates, prompts = await asyncio.gather(
            self.list_tools() if declared.supports("tools") else empty(),
            self.list_resources() if declared.supports("resources") else empty(),
            self.list_resource_templates() if declared.supports("resources") else empty(),
            self.list_prompts() if declared.supports("prompts") else empty(),
        )
        logger.debug(
            "Discovered %d tools, %d resources, %d templates, %d prompts",
            len(tools),
            len(resources),
            len(templates),
            len(prompts),
        )
        return Catalog(
            tools=tools, resources=resources, resource_templates=templates, prompts=prompts
        )

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def call_tool(self, name: str, arguments: dict[str, Any] | None = None) -> CallToolResult:
        result = await self.session.request(
            "tools/call", {"name": name, "arguments": arguments or {}}
        )
        return CallToolResult.model_validate(result)

    async def read_resource(self, uri: str) -> ReadResourceResult:
        result = await self.session.request("resources/read", {"uri": uri})
        return ReadResourceResult.model_validate(result)

    async def get_prompt(self, name: str, arguments: dict[str, Any] | None = None) -> GetPromptResult:
        result = await self.session.request(
            "prompts/get", {"name": name, "arguments": arguments or {}}
        )
        return GetPromptResult.model_validate(result)

    @staticmethod
    def to_function_schema(tool: ToolDescriptor) -> dict[str, Any]:
        """Convert a tool descriptor to an OpenAI-compatible function schema."""
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema or {"type": "object", "properties": {}},
            },
        }
