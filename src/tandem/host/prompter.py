"""Operator input for the interactive host.

All blocking reads go through ``loop.run_in_executor`` so the event loop
keeps serving the transport (and any sampling request the peer sends while
the operator is still typing).
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

import click
from rich.console import Console

T = TypeVar("T")

Choice = tuple[str, T]


@runtime_checkable
class Prompter(Protocol):
    """Asks the operator for choices and values."""

    async def select(self, message: str, choices: Sequence[Choice[Any]]) -> Any: ...

    async def text(self, message: str) -> str: ...


class ConsolePrompter:
    """Numbered menus and free-text prompts on the terminal.

    Satisfies the :class:`Prompter` protocol.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def select(self, message: str, choices: Sequence[Choice[T]]) -> T:
        """Show *choices* as a numbered list and return the chosen value."""
        if not choices:
            msg = f"Nothing to choose from for {message!r}"
            raise ValueError(msg)

        self.console.print(f"[bold]{message}[/bold]")
        for index, (label, _value) in enumerate(choices, start=1):
            self.console.print(f"  [cyan]{index}[/cyan]) {label}")

        index = await self._ask(
            lambda: click.prompt("Choice", type=click.IntRange(1, len(choices)), default=1)
        )
        return choices[index - 1][1]

    async def text(self, message: str) -> str:
        return await self._ask(lambda: click.prompt(message, default="", show_default=False))

    @staticmethod
    async def _ask(read: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, read)
