"""InteractiveDriver — the operator menu of ``tandem host``.

Four actions, chosen in a loop until the operator aborts or the peer goes
away:

- **Query**: free-form question answered by the model, which may call the
  peer's tools (see :class:`QueryRunner`).
- **Tools**: call one tool, asking for each of its input properties.
- **Resources**: read a resource, filling in template placeholders.
- **Prompts**: fetch a prompt and run each message through the same
  present/confirm/generate step used for sampling.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

import click
from rich.console import Console

from tandem.protocol.errors import ProtocolError, SessionClosedError, TransportClosedError
from tandem.protocol.models import CallToolResult, TextContent
from tandem.uri_template import expand_uri_template, template_parameters

if TYPE_CHECKING:
    from tandem.host.client import Catalog, HostClient
    from tandem.host.generation import LiteLLMGenerator
    from tandem.host.prompter import Prompter
    from tandem.host.sampling import SamplingHandler
    from tandem.protocol.models import PromptDescriptor, ToolDescriptor

logger = logging.getLogger(__name__)

NO_TEXT = "No text generated."
MENU = ("Query", "Tools", "Resources", "Prompts")


class QueryRunner:
    """A bounded model/tool loop over the peer's tools.

    The model sees every tool as an OpenAI function schema.  Each tool call
    it makes is forwarded to the peer and the result fed back, for at most
    *max_steps* model calls.
    """

    def __init__(
        self,
        client: HostClient,
        generator: LiteLLMGenerator,
        tools: list[ToolDescriptor],
        *,
        max_steps: int = 5,
    ) -> None:
        self.client = client
        self.generator = generator
        self.tools = tools
        self.max_steps = max_steps

    async def run(self, query: str) -> str:
        """Answer *query*: final text, else the first tool result, else ``NO_TEXT``."""
        schemas = [self.client.to_function_schema(tool) for tool in self.tools]
        messages: list[dict[str, Any]] = [{"role": "user", "content": query}]
        first_result: str | None = None

        for step in range(1, self.max_steps + 1):
            response = await self.generator.complete(messages, tools=schemas or None)
            message = response.choices[0].message
            tool_calls = getattr(message, "tool_calls", None) or []
            if not tool_calls:
                return message.content or first_result or NO_TEXT

            logger.debug("Query step %d: %d tool call(s)", step, len(tool_calls))
            messages.append(
                {
                    "role": "assistant",
                    "content": message.content,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {
                                "name": call.function.name,
                                "arguments": call.function.arguments,
                            },
                        }
                        for call in tool_calls
                    ],
                }
            )
            for call in tool_calls:
                text = await self._call(call.function.name, call.function.arguments)
                if first_result is None:
                    first_result = text
                messages.append({"role": "tool", "tool_call_id": call.id, "content": text})

        logger.info("Query stopped after %d steps", self.max_steps)
        return first_result or NO_TEXT

    async def _call(self, name: str, raw_arguments: str | None) -> str:
        try:
            arguments = json.loads(raw_arguments or "{}")
        except json.JSONDecodeError:
            return f"Invalid arguments for {name}: {raw_arguments!r}"
        try:
            result = await self.client.call_tool(name, arguments)
        except (SessionClosedError, TransportClosedError):
            raise
        except ProtocolError as exc:
            return f"Tool {name} failed: {exc}"
        return _first_text(result)


class InteractiveDriver:
    """Runs the operator menu against a connected :class:`HostClient`."""

    def __init__(
        self,
        client: HostClient,
        catalog: Catalog,
        prompter: Prompter,
        *,
        sampling: SamplingHandler,
        query_runner: QueryRunner,
        console: Console | None = None,
    ) -> None:
        self.client = client
        self.catalog = catalog
        self.prompter = prompter
        self.sampling = sampling
        self.query_runner = query_runner
        self.console = console or Console()

    async def run(self) -> None:
        """Loop over the menu until the operator aborts or the session closes."""
        self.console.print("[green]Connected[/green]")
        while True:
            try:
                option = await self.prompter.select(
                    "What do you want to do?", [(item, item) for item in MENU]
                )
                await self.run_option(option)
            except (click.Abort, EOFError, KeyboardInterrupt):
                self.console.print()
                return
            except (SessionClosedError, TransportClosedError) as exc:
                self.console.print(f"[red]Peer disconnected:[/red] {exc}")
                return
            except ProtocolError as exc:
                self.console.print(f"[red]Error:[/red] {exc}")

    async def run_option(self, option: str) -> None:
        if option == "Query":
            await self.handle_query()
        elif option == "Tools":
            await self.handle_tool()
        elif option == "Resources":
            await self.handle_resource()
        elif option == "Prompts":
            await self.handle_prompt()
        else:
            logger.warning("Unknown menu option %r", option)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def handle_query(self) -> None:
        query = await self.prompter.text("Enter your query")
        self.console.print(await self.query_runner.run(query))

    async def handle_tool(self) -> None:
        if not self.catalog.tools:
            self.console.print("[yellow]The peer has no tools.[/yellow]")
            return
        tool = await self.prompter.select(
            "Select a tool",
            [(tool.annotations.title or tool.title or tool.name, tool) for tool in self.catalog.tools],
        )

        arguments: dict[str, Any] = {}
        properties: dict[str, Any] = tool.input_schema.get("properties", {})
        for key, schema in properties.items():
            kind = schema.get("type", "string") if isinstance(schema, dict) else "string"
            raw = await self.prompter.text(f"Enter value for {key} ({kind}):")
            arguments[key] = _coerce(raw, kind)

        result = await self.client.call_tool(tool.name, arguments)
        self.console.print(_first_text(result))

    async def handle_resource(self) -> None:
        choices: list[tuple[str, tuple[str, str]]] = [
            (resource.name, ("resource", resource.uri)) for resource in self.catalog.resources
        ]
        choices += [
            (template.name, ("template", template.uri_template))
            for template in self.catalog.resource_templates
        ]
        if not choices:
            self.console.print("[yellow]The peer has no resources.[/yellow]")
            return
        kind, uri = await self.prompter.select("Select a resource", choices)

        if kind == "template":
            values = {
                name: await self.prompter.text(f"Enter value for {name}:")
                for name in template_parameters(uri)
            }
            uri = expand_uri_template(uri, values)

        result = await self.client.read_resource(uri)
        if not result.contents:
            self.console.print("[yellow]Empty resource.[/yellow]")
            return
        text = result.contents[0].text
        try:
            self.console.print_json(json.dumps(json.loads(text), indent=2))
        except json.JSONDecodeError:
            self.console.print(text)

    async def handle_prompt(self) -> None:
        if not self.catalog.prompts:
            self.console.print("[yellow]The peer has no prompts.[/yellow]")
            return
        prompt: PromptDescriptor = await self.prompter.select(
            "Select a prompt", [(prompt.name, prompt) for prompt in self.catalog.prompts]
        )

        arguments = {
            argument.name: await self.prompter.text(f"Enter value for {argument.name}:")
            for argument in prompt.arguments
        }
        result = await self.client.get_prompt(prompt.name, arguments)
        for message in result.messages:
            text = await self.sampling.run_message(message.content)
            if text is not None:
                self.console.print(text)


def _first_text(result: CallToolResult) -> str:
    for part in result.content:
        if isinstance(part, TextContent):
            return part.text
    return ""


def _coerce(raw: str, kind: str) -> Any:
    """Convert operator input to the JSON type the schema asks for."""
    try:
        if kind == "integer":
            return int(raw)
        if kind == "number":
            return float(raw)
    except ValueError:
        return raw
    if kind == "boolean":
        return raw.strip().lower() in ("true", "yes", "y", "1")
    return raw
