"""Tests for ConsolePrompter."""

from __future__ import annotations

from io import StringIO
from unittest.mock import patch

import pytest
from rich.console import Console

from tandem.host.prompter import ConsolePrompter, Prompter


def _prompter() -> tuple[ConsolePrompter, StringIO]:
    out = StringIO()
    return ConsolePrompter(Console(file=out, width=120)), out


class TestConsolePrompter:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(ConsolePrompter(), Prompter)

    async def test_select_returns_value_of_chosen_entry(self) -> None:
        prompter, out = _prompter()

        with patch("tandem.host.prompter.click.prompt", return_value=2) as mock_prompt:
            value = await prompter.select("Pick", [("First", "a"), ("Second", "b")])

        assert value == "b"
        assert "1) First" in out.getvalue()
        assert "2) Second" in out.getvalue()
        assert mock_prompt.call_args.kwargs["default"] == 1

    async def test_select_without_choices(self) -> None:
        prompter, _out = _prompter()
        with pytest.raises(ValueError, match="Nothing to choose"):
            await prompter.select("Pick", [])

    async def test_text(self) -> None:
        prompter, _out = _prompter()

        with patch("tandem.host.prompter.click.prompt", return_value="Ada") as mock_prompt:
            value = await prompter.text("Enter value for name:")

        assert value == "Ada"
        assert mock_prompt.call_args.args == ("Enter value for name:",)
