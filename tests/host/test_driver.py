"""Tests for QueryRunner and the interactive menu."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from io import StringIO
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import click
from rich.console import Console

from tandem.host.client import Catalog, HostClient
from tandem.host.driver import NO_TEXT, InteractiveDriver, QueryRunner
from tandem.protocol.errors import NotFoundError, RpcError, TransportClosedError
from tandem.protocol.models import (
    CallToolResult,
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

ADD_TOOL = ToolDescriptor(
    name="add",
    description="Add two numbers",
    input_schema={
        "type": "object",
        "properties": {"a": {"type": "integer"}, "b": {"type": "integer"}, "note": {"type": "string"}},
    },
    annotations=ToolAnnotations(title="Add numbers"),
)


class ScriptedPrompter:
    """Answers menus and prompts from a fixed script."""

    def __init__(self, selections: Sequence[Any], texts: Sequence[str] = ()) -> None:
        self.selections = list(selections)
        self.texts = list(texts)
        self.asked: list[str] = []

    async def select(self, message: str, choices: Sequence[tuple[str, Any]]) -> Any:
        if not self.selections:
            raise click.Abort()
        wanted = self.selections.pop(0)
        for label, value in choices:
            if wanted in (label, value):
                return value
        raise AssertionError(f"{wanted!r} not offered in {message!r}")

    async def text(self, message: str) -> str:
        self.asked.append(message)
        return self.texts.pop(0)


def _client() -> MagicMock:
    client = MagicMock(spec=HostClient)
    client.to_function_schema = HostClient.to_function_schema
    return client


class TestQueryRunner:
    async def test_plain_answer(self, litellm_response: Callable[..., MagicMock]) -> None:
        generator = MagicMock()
        generator.complete = AsyncMock(return_value=litellm_response("Paris"))
        runner = QueryRunner(_client(), generator, [ADD_TOOL])

        assert await runner.run("Capital of France?") == "Paris"
        _messages, = generator.complete.call_args.args
        assert generator.complete.call_args.kwargs["tools"][0]["function"]["name"] == "add"

    async def test_tool_loop_then_answer(
        self,
        litellm_response: Callable[..., MagicMock],
        tool_call: Callable[..., MagicMock],
    ) -> None:
        client = _client()
        client.call_tool = AsyncMock(return_value=CallToolResult.from_text("5"))
        generator = MagicMock()
        generator.complete = AsyncMock(
            side_effect=[
                litellm_response("", tool_calls=[tool_call("call_1", "add", {"a": 2, "b": 3})]),
                litellm_response("The sum is 5"),
            ]
        )
        runner = QueryRunner(client, generator, [ADD_TOOL])

        assert await runner.run("2+3?") == "The sum is 5"
        client.call_tool.assert_awaited_once_with("add", {"a": 2, "b": 3})
        second_messages = generator.complete.call_args_list[1].args[0]
        assert second_messages[-1] == {"role": "tool", "tool_call_id": "call_1", "content": "5"}
        assert second_messages[-2]["tool_calls"][0]["function"]["name"] == "add"

    async def test_falls_back_to_first_tool_result(
        self,
        litellm_response: Callable[..., MagicMock],
        tool_call: Callable[..., MagicMock],
    ) -> None:
        client = _client()
        client.call_tool = AsyncMock(return_value=CallToolResult.from_text("User 1 created successfully"))
        generator = MagicMock()
        generator.complete = AsyncMock(
            side_effect=[
                litellm_response("", tool_calls=[tool_call("c1", "create-random-user", {})]),
                litellm_response(""),
            ]
        )
        runner = QueryRunner(client, generator, [ADD_TOOL])

        assert await runner.run("make a user") == "User 1 created successfully"

    async def test_stops_after_max_steps(
        self,
        litellm_response: Callable[..., MagicMock],
        tool_call: Callable[..., MagicMock],
    ) -> None:
        client = _client()
        client.call_tool = AsyncMock(return_value=CallToolResult.from_text("again"))
        generator = MagicMock()
        generator.complete = AsyncMock(
            side_effect=lambda *a, **k: litellm_response("", tool_calls=[tool_call("c", "add", {})])
        )
        runner = QueryRunner(client, generator, [ADD_TOOL], max_steps=3)

        assert await runner.run("loop forever") == "again"
        assert generator.complete.await_count == 3

    async def test_no_text_generated(self, litellm_response: Callable[..., MagicMock]) -> None:
        generator = MagicMock()
        generator.complete = AsyncMock(return_value=litellm_response(""))
        runner = QueryRunner(_client(), generator, [])

        assert await runner.run("?") == NO_TEXT
        assert generator.complete.call_args.kwargs["tools"] is None

    async def test_tool_error_is_fed_back(
        self,
        litellm_response: Callable[..., MagicMock],
        tool_call: Callable[..., MagicMock],
    ) -> None:
        client = _client()
        client.call_tool = AsyncMock(side_effect=RpcError(-32002, "Unknown tool: nope"))
        generator = MagicMock()
        generator.complete = AsyncMock(
            side_effect=[
                litellm_response("", tool_calls=[tool_call("c1", "nope", {})]),
                litellm_response("Sorry"),
            ]
        )
        runner = QueryRunner(client, generator, [])

        assert await runner.run("?") == "Sorry"
        tool_message = generator.complete.call_args_list[1].args[0][-1]
        assert "Unknown tool: nope" in tool_message["content"]


def _driver(
    client: MagicMock,
    prompter: ScriptedPrompter,
    catalog: Catalog | None = None,
    sampling: MagicMock | None = None,
    query_runner: MagicMock | None = None,
) -> tuple[InteractiveDriver, StringIO]:
    out = StringIO()
    driver = InteractiveDriver(
        client,
        catalog or Catalog(),
        prompter,
        sampling=sampling or MagicMock(),
        query_runner=query_runner or MagicMock(),
        console=Console(file=out, width=120),
    )
    return driver, out


class TestInteractiveDriver:
    async def test_tools_prompts_each_property(self) -> None:
        client = _client()
        client.call_tool = AsyncMock(return_value=CallToolResult.from_text("5"))
        prompter = ScriptedPrompter(["Tools", "Add numbers"], ["2", "3", "hi"])
        driver, out = _driver(client, prompter, Catalog(tools=[ADD_TOOL]))

        await driver.run()

        client.call_tool.assert_awaited_once_with("add", {"a": 2, "b": 3, "note": "hi"})
        assert prompter.asked[0] == "Enter value for a (integer):"
        assert "5" in out.getvalue()

    async def test_resource_template_is_filled_in(self) -> None:
        client = _client()
        client.read_resource = AsyncMock(
            return_value=ReadResourceResult(
                contents=[TextResourceContents(uri="users://2/profile", text='{"id": 2, "name": "Grace"}')]
            )
        )
        catalog = Catalog(
            resources=[ResourceDescriptor(name="users", uri="users://all")],
            resource_templates=[
                ResourceTemplateDescriptor(name="user-details", uri_template="users://{userId}/profile")
            ],
        )
        prompter = ScriptedPrompter(["Resources", "user-details"], ["2"])
        driver, out = _driver(client, prompter, catalog)

        await driver.run()

        client.read_resource.assert_awaited_once_with("users://2/profile")
        assert prompter.asked == ["Enter value for userId:"]
        assert '"name": "Grace"' in out.getvalue()

    async def test_static_resource_non_json_printed_raw(self) -> None:
        client = _client()
        client.read_resource = AsyncMock(
            return_value=ReadResourceResult(
                contents=[TextResourceContents(uri="notes://motd", text="plain words")]
            )
        )
        catalog = Catalog(resources=[ResourceDescriptor(name="motd", uri="notes://motd")])
        driver, out = _driver(client, ScriptedPrompter(["Resources", "motd"]), catalog)

        await driver.run()

        assert "plain words" in out.getvalue()

    async def test_prompt_messages_go_through_sampling_step(self) -> None:
        client = _client()
        client.get_prompt = AsyncMock(
            return_value=GetPromptResult(
                messages=[PromptMessage(role="user", content=TextContent(text="Invent Ada"))]
            )
        )
        sampling = MagicMock()
        sampling.run_message = AsyncMock(return_value="Ada, ada@example.com")
        catalog = Catalog(
            prompts=[
                PromptDescriptor(
                    name="generate-fake-user",
                    arguments=[PromptArgument(name="name", required=True)],
                )
            ]
        )
        prompter = ScriptedPrompter(["Prompts", "generate-fake-user"], ["Ada"])
        driver, out = _driver(client, prompter, catalog, sampling=sampling)

        await driver.run()

        client.get_prompt.assert_awaited_once_with("generate-fake-user", {"name": "Ada"})
        sampling.run_message.assert_awaited_once_with(TextContent(text="Invent Ada"))
        assert "Ada, ada@example.com" in out.getvalue()

    async def test_query_prints_answer(self) -> None:
        runner = MagicMock()
        runner.run = AsyncMock(return_value="42")
        prompter = ScriptedPrompter(["Query"], ["meaning of life"])
        driver, out = _driver(_client(), prompter, query_runner=runner)

        await driver.run()

        runner.run.assert_awaited_once_with("meaning of life")
        assert "42" in out.getvalue()

    async def test_protocol_error_keeps_menu_running(self) -> None:
        client = _client()
        client.call_tool = AsyncMock(side_effect=[NotFoundError("tool", "add"), CallToolResult.from_text("ok")])
        catalog = Catalog(tools=[ToolDescriptor(name="add")])
        prompter = ScriptedPrompter(["Tools", "add", "Tools", "add"])
        driver, out = _driver(client, prompter, catalog)

        await driver.run()

        assert client.call_tool.await_count == 2
        assert "Unknown tool: add" in out.getvalue()

    async def test_disconnect_ends_loop(self) -> None:
        client = _client()
        client.call_tool = AsyncMock(side_effect=TransportClosedError())
        catalog = Catalog(tools=[ToolDescriptor(name="add")])
        prompter = ScriptedPrompter(["Tools", "add", "Tools", "add"])
        driver, out = _driver(client, prompter, catalog)

        await driver.run()

        assert client.call_tool.await_count == 1
        assert "Peer disconnected" in out.getvalue()

    async def test_empty_catalog_messages(self) -> None:
        prompter = ScriptedPrompter(["Tools", "Resources", "Prompts"])
        driver, out = _driver(_client(), prompter)

        await driver.run()

        output = out.getvalue()
        assert "no tools" in output
        assert "no resources" in output
        assert "no prompts" in output
