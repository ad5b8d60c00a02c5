"""Protocol models — JSON-RPC 2.0 envelopes and capability payloads.

Field names follow the wire format (camelCase via aliases) so that
``model_dump(by_alias=True)`` produces exactly what goes over the transport.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

PROTOCOL_VERSION = "2025-06-18"

RequestId = int | str

# ---------------------------------------------------------------------------
# JSON-RPC 2.0 envelope
# ---------------------------------------------------------------------------


class JsonRpcRequest(BaseModel):
    """A request: expects exactly one response with the same ``id``."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId
    method: str
    params: dict[str, Any] = {}


class JsonRpcNotification(BaseModel):
    """A one-way message; never answered."""

    jsonrpc: Literal["2.0"] = "2.0"
    method: str
    params: dict[str, Any] = {}


class JsonRpcError(BaseModel):
    """A JSON-RPC 2.0 error object."""

    code: int
    message: str
    data: Any = None


class JsonRpcResponse(BaseModel):
    """A response carrying either ``result`` or ``error``, never both."""

    jsonrpc: Literal["2.0"] = "2.0"
    id: RequestId | None
    result: dict[str, Any] | None = None
    error: JsonRpcError | None = None

    @model_validator(mode="after")
    def _exactly_one_outcome(self) -> JsonRpcResponse:
        if (self.result is None) == (self.error is None):
            msg = "response must carry exactly one of 'result' or 'error'"
            raise ValueError(msg)
        return self


JsonRpcMessage = JsonRpcRequest | JsonRpcNotification | JsonRpcResponse


# ---------------------------------------------------------------------------
# Negotiation
# ---------------------------------------------------------------------------


class Implementation(BaseModel):
    """Name and version of one side of the connection."""

    name: str
    version: str


class Capabilities(BaseModel):
    """Declared capability summary; presence of a key declares support."""

    model_config = ConfigDict(frozen=True)

    tools: dict[str, Any] | None = None
    resources: dict[str, Any] | None = None
    prompts: dict[str, Any] | None = None
    sampling: dict[str, Any] | None = None

    def kinds(self) -> frozenset[str]:
        return frozenset(
            name for name in ("tools", "resources", "prompts", "sampling")
            if getattr(self, name) is not None
        )

    def supports(self, kind: str) -> bool:
        return kind in self.kinds()


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------


class TextContent(BaseModel):
    """Plain text content part."""

    type: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """Inline base64 image content part."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["image"] = "image"
    data: str
    mime_type: str = Field(alias="mimeType")


Content = Annotated[TextContent | ImageContent, Field(discriminator="type")]


class TextResourceContents(BaseModel):
    """The text body of a resource read."""

    model_config = ConfigDict(populate_by_name=True)

    uri: str
    mime_type: str | None = Field(default=None, alias="mimeType")
    text: str


# ---------------------------------------------------------------------------
# Capability descriptors
# ---------------------------------------------------------------------------


class ToolAnnotations(BaseModel):
    """Behavioural hints attached to a tool."""

    model_config = ConfigDict(populate_by_name=True)

    title: str | None = None
    read_only: bool = Field(default=False, alias="readOnlyHint")
    destructive: bool = Field(default=True, alias="destructiveHint")
    idempotent: bool = Field(default=False, alias="idempotentHint")
    open_world: bool = Field(default=True, alias="openWorldHint")


class ToolDescriptor(BaseModel):
    """A tool as returned by ``tools/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str | None = None
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}},
        alias="inputSchema",
    )
    annotations: ToolAnnotations = Field(default_factory=ToolAnnotations)


class ResourceDescriptor(BaseModel):
    """A concrete resource as returned by ``resources/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str | None = None
    uri: str
    description: str = ""
    mime_type: str | None = Field(default=None, alias="mimeType")


class ResourceTemplateDescriptor(BaseModel):
    """A parameterised resource as returned by ``resources/templates/list``."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    title: str | None = None
    uri_template: str = Field(alias="uriTemplate")
    description: str = ""
    mime_type: str | None = Field(default=None, alias="mimeType")


class PromptArgument(BaseModel):
    """One named argument of a prompt template."""

    name: str
    description: str | None = None
    required: bool = False


class PromptDescriptor(BaseModel):
    """A prompt template as returned by ``prompts/list``."""

    name: str
    title: str | None = None
    description: str = ""
    arguments: list[PromptArgument] = []


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class CallToolResult(BaseModel):
    """Result of ``tools/call``."""

    model_config = ConfigDict(populate_by_name=True)

    content: list[Content] = []
    is_error: bool = Field(default=False, alias="isError")

    @classmethod
    def from_text(cls, text: str) -> CallToolResult:
        return cls(content=[TextContent(text=text)])

    @property
    def text(self) -> str:
        """Concatenated text of all text parts."""
        return "\n".join(part.text for part in self.content if isinstance(part, TextContent))


class ReadResourceResult(BaseModel):
    """Result of ``resources/read``."""

    contents: list[TextResourceContents] = []


class PromptMessage(BaseModel):
    """One message produced by a prompt template."""

    role: Literal["user", "assistant"]
    content: Content


class GetPromptResult(BaseModel):
    """Result of ``prompts/get``."""

    description: str | None = None
    messages: list[PromptMessage] = []


# ---------------------------------------------------------------------------
# Sampling
# ---------------------------------------------------------------------------


class SamplingMessage(BaseModel):
    """One message in a ``sampling/createMessage`` request."""

    role: Literal["user", "assistant"]
    content: Content


class CreateMessageParams(BaseModel):
    """Parameters of ``sampling/createMessage``."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[SamplingMessage]
    max_tokens: int = Field(alias="maxTokens")
    system_prompt: str | None = Field(default=None, alias="systemPrompt")


class CreateMessageResult(BaseModel):
    """Reply to ``sampling/createMessage``."""

    model_config = ConfigDict(populate_by_name=True)

    role: Literal["user", "assistant"] = "assistant"
    content: Content
    model: str
    stop_reason: str | None = Field(default=None, alias="stopReason")


def dump(model: BaseModel) -> dict[str, Any]:
    """Serialise a payload model into its wire form."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
