"""CapabilityRegistry — the peer's catalog of tools, resources, and prompts.

Entries are keyed by ``(kind, name)``.  Each carries the descriptor that is
advertised over the wire and the handler that serves it.  Arguments are
declared as pydantic models and validated strictly before a handler runs,
so handlers only ever see well-typed input.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel, ValidationError

from tandem.protocol.errors import (
    InvalidArgumentsError,
    MissingTemplateParameterError,
    NotFoundError,
)
from tandem.protocol.models import (
    CallToolResult,
    Capabilities,
    GetPromptResult,
    PromptArgument,
    PromptDescriptor,
    PromptMessage,
    ReadResourceResult,
    ResourceDescriptor,
    ResourceTemplateDescriptor,
    TextContent,
    TextResourceContents,
    ToolAnnotations,
    ToolDescriptor,
)
from tandem.uri_template import expand_uri_template, match_uri_template, template_parameters

logger = logging.getLogger(__name__)

ToolHandler = Callable[[Any], "CallToolResult | str | Awaitable[CallToolResult | str]"]
ResourceHandler = Callable[[str], "ReadResourceResult | str | Awaitable[ReadResourceResult | str]"]
TemplateHandler = Callable[
    [str, dict[str, str]], "ReadResourceResult | str | Awaitable[ReadResourceResult | str]"
]
PromptHandler = Callable[[Any], "GetPromptResult | str | Awaitable[GetPromptResult | str]"]

Descriptor = ToolDescriptor | ResourceDescriptor | ResourceTemplateDescriptor | PromptDescriptor


class CapabilityKind(str, Enum):
    """The four kinds of capability a peer can expose."""

    TOOL = "tool"
    RESOURCE = "resource"
    RESOURCE_TEMPLATE = "resource_template"
    PROMPT = "prompt"


@dataclass
class _Entry:
    kind: CapabilityKind
    descriptor: Descriptor
    handler: Callable[..., Any]
    arguments: type[BaseModel] | None = None


class CapabilityRegistry:
    """Holds capability descriptors and dispatches invocations to handlers.

    Usage::

        registry = CapabilityRegistry()
        registry.register_tool("create-user", create_user, arguments=NewUser)
        tools = registry.list(CapabilityKind.TOOL)
        result = await registry.invoke(CapabilityKind.TOOL, "create-user", {...})
    """

    def __init__(self) -> None:
        self._entries: dict[CapabilityKind, dict[str, _Entry]] = {kind: {} for kind in CapabilityKind}

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_tool(
        self,
        name: str,
        handler: ToolHandler,
        *,
        description: str = "",
        title: str | None = None,
        arguments: type[BaseModel] | None = None,
        annotations: ToolAnnotations | None = None,
    ) -> ToolDescriptor:
        """Register a tool; *handler* receives the validated *arguments* model."""
        schema: dict[str, Any] = (
            arguments.model_json_schema() if arguments is not None
            else {"type": "object", "properties": {}}
        )
        descriptor = ToolDescriptor(
            name=name,
            title=title,
            description=description,
            input_schema=schema,
            annotations=annotations or ToolAnnotations(title=title),
        )
        self._add(_Entry(CapabilityKind.TOOL, descriptor, handler, arguments))
        return descriptor

    def register_resource(
        self,
        name: str,
        uri: str,
        handler: ResourceHandler,
        *,
        description: str = "",
        title: str | None = None,
        mime_type: str | None = None,
    ) -> ResourceDescriptor:
        """Register a concrete resource; *handler* receives the URI."""
        descriptor = ResourceDescriptor(
            name=name, title=title, uri=uri, description=description, mime_type=mime_type
        )
        self._add(_Entry(CapabilityKind.RESOURCE, descriptor, handler))
        return descriptor

    def register_resource_template(
        self,
        name: str,
        uri_template: str,
        handler: TemplateHandler,
        *,
        description: str = "",
        title: str | None = None,
        mime_type: str | None = None,
    ) -> ResourceTemplateDescriptor:
        """Register a parameterised resource.

        *handler* receives the concrete URI and the placeholder values.
        """
        descriptor = ResourceTemplateDescriptor(
            name=name,
            title=title,
            uri_template=uri_template,
            description=description,
            mime_type=mime_type,
        )
        self._add(_Entry(CapabilityKind.RESOURCE_TEMPLATE, descriptor, handler))
        return descriptor

    def register_prompt(
        self,
        name: str,
        handler: PromptHandler,
        *,
        description: str = "",
        title: str | None = None,
        arguments: type[BaseModel] | None = None,
    ) -> PromptDescriptor:
        """Register a prompt template; *handler* receives the validated arguments."""
        prompt_args: list[PromptArgument] = []
        if arguments is not None:
            for field_name, info in arguments.model_fields.items():
                prompt_args.append(
                    PromptArgument(
                        name=field_name,
                        description=info.description,
                        required=info.is_required(),
                    )
                )
        descriptor = PromptDescriptor(
            name=name, title=title, description=description, arguments=prompt_args
        )
        self._add(_Entry(CapabilityKind.PROMPT, descriptor, handler, arguments))
        return descriptor

    def _add(self, entry: _Entry) -> None:
        bucket = self._entries[entry.kind]
        name = entry.descriptor.name
        if name in bucket:
            msg = f"{entry.kind.value} {name!r} is already registered"
            raise ValueError(msg)
        bucket[name] = entry
        logger.debug("Registered %s %s", entry.kind.value, name)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self, kind: CapabilityKind) -> list[Any]:
        """Return the descriptors of every entry of *kind*, in registration order."""
        return [entry.descriptor for entry in self._entries[kind].values()]

    def capabilities(self) -> Capabilities:
        """Summarise which kinds this registry serves."""
        has = {kind: bool(self._entries[kind]) for kind in CapabilityKind}
        return Capabilities(
            tools={} if has[CapabilityKind.TOOL] else None,
            resources=(
                {} if has[CapabilityKind.RESOURCE] or has[CapabilityKind.RESOURCE_TEMPLATE] else None
            ),
            prompts={} if has[CapabilityKind.PROMPT] else None,
        )

    # ------------------------------------------------------------------
    # Invocation
    # ------------------------------------------------------------------

    async def invoke(
        self, kind: CapabilityKind, name: str, args: dict[str, Any] | None = None
    ) -> CallToolResult | ReadResourceResult | GetPromptResult:
        """Validate *args* and run the handler of entry *name*.

        For resource templates, *args* supplies the placeholder values.

        Raises:
            NotFoundError: No entry of *kind* is named *name*.
            InvalidArgumentsError: *args* fails the declared argument schema.
            MissingTemplateParameterError: A template placeholder is unfilled.
        """
        entry = self._entries[kind].get(name)
        if entry is None:
            raise NotFoundError(kind.value.replace("_", " "), name)
        args = args or {}

        if kind is CapabilityKind.TOOL:
            result = await _call(entry.handler, self._validate(entry, args))
            return result if isinstance(result, CallToolResult) else CallToolResult.from_text(str(result))

        if kind is CapabilityKind.PROMPT:
            result = await _call(entry.handler, self._validate(entry, args))
            if isinstance(result, GetPromptResult):
                return result
            message = PromptMessage(role="user", content=TextContent(text=str(result)))
            return GetPromptResult(description=entry.descriptor.description, messages=[message])

        if kind is CapabilityKind.RESOURCE:
            uri = entry.descriptor.uri  # type: ignore[union-attr]
            return self._as_contents(entry, uri, await _call(entry.handler, uri))

        template = entry.descriptor.uri_template  # type: ignore[union-attr]
        values = {key: str(value) for key, value in args.items() if value is not None}
        uri = expand_uri_template(template, values)
        return self._as_contents(entry, uri, await _call(entry.handler, uri, values))

    async def read_resource(self, uri: str) -> ReadResourceResult:
        """Resolve *uri* against static resources, then templates, and read it.

        Raises:
            MissingTemplateParameterError: *uri* matches a template but still
                carries one of its placeholders, e.g. ``users://{userId}/profile``.
            NotFoundError: Nothing matches *uri*.
        """
        for entry in self._entries[CapabilityKind.RESOURCE].values():
            if entry.descriptor.uri == uri:  # type: ignore[union-attr]
                return self._as_contents(entry, uri, await _call(entry.handler, uri))

        for entry in self._entries[CapabilityKind.RESOURCE_TEMPLATE].values():
            template = entry.descriptor.uri_template  # type: ignore[union-attr]
            values = match_uri_template(template, uri)
            if values is None:
                continue
            unfilled = [name for name, value in values.items() if template_parameters(value)]
            if unfilled:
                raise MissingTemplateParameterError(template, unfilled)
            return self._as_contents(entry, uri, await _call(entry.handler, uri, values))

        raise NotFoundError("resource", uri)

    @staticmethod
    def _validate(entry: _Entry, args: dict[str, Any]) -> Any:
        if entry.arguments is None:
            return args
        try:
            return entry.arguments.model_validate(args, strict=True)
        except ValidationError as exc:
            detail = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidArgumentsError(entry.descriptor.name, detail) from exc

    @staticmethod
    def _as_contents(entry: _Entry, uri: str, result: Any) -> ReadResourceResult:
        if isinstance(result, ReadResourceResult):
            return result
        mime_type = getattr(entry.descriptor, "mime_type", None)
        return ReadResourceResult(
            contents=[TextResourceContents(uri=uri, mime_type=mime_type, text=str(result))]
        )


async def _call(handler: Callable[..., Any], *args: Any) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
