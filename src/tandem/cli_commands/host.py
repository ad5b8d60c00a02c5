"""``tandem host`` — launch a peer and drive it from the terminal."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

import click

from tandem.cli_commands._output import console

if TYPE_CHECKING:
    from tandem.config import HostSettings


@click.command(context_settings={"ignore_unknown_options": True})
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="YAML settings file.",
)
@click.option("--model", default=None, help="LiteLLM model string, e.g. gemini/gemini-2.0-flash.")
@click.option("--api-key", envvar="GEMINI_API_KEY", default=None, help="Model provider API key.")
@click.option("--auto-approve", is_flag=True, help="Approve every generation request.")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds.")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def host(
    config_path: Path | None,
    model: str | None,
    api_key: str | None,
    auto_approve: bool,
    timeout: float | None,
    command: tuple[str, ...],
) -> None:
    """Launch a peer and open the interactive menu.

    COMMAND (after ``--``) starts the peer; it defaults to ``tandem serve``
    run with the current interpreter.
    """
    from tandem.config import SettingsError, load_settings

    try:
        settings = load_settings(config_path)
    except SettingsError as exc:
        console.print(f"[red]Settings error:[/red] {exc}")
        sys.exit(1)

    settings = apply_overrides(
        settings,
        command=command,
        model=model,
        api_key=api_key,
        auto_approve=auto_approve,
        timeout=timeout,
    )

    if settings.telemetry.enabled:
        from tandem.utils.telemetry import configure_telemetry

        configure_telemetry(
            export_to_console=settings.telemetry.export_to_console,
            otlp_endpoint=settings.telemetry.otlp_endpoint,
        )

    from tandem.protocol.errors import ProtocolError

    try:
        asyncio.run(run_host(settings))
    except KeyboardInterrupt:
        console.print()
    except (ProtocolError, OSError) as exc:
        console.print(f"[red]Host error:[/red] {exc}")
        sys.exit(1)


def apply_overrides(
    settings: HostSettings,
    *,
    command: tuple[str, ...] = (),
    model: str | None = None,
    api_key: str | None = None,
    auto_approve: bool = False,
    timeout: float | None = None,
) -> HostSettings:
    """Layer command-line values over the file settings."""
    model_update: dict[str, Any] = {}
    if model:
        model_update["model"] = model
    if api_key and not settings.model.api_key:
        model_update["api_key"] = api_key

    update: dict[str, Any] = {}
    if model_update:
        update["model"] = settings.model.model_copy(update=model_update)
    if command:
        update["peer_command"] = list(command)
    if auto_approve:
        update["auto_approve"] = True
    if timeout is not None:
        update["request_timeout"] = timeout
    return settings.model_copy(update=update) if update else settings


async def run_host(settings: HostSettings) -> None:
    """Connect to the configured peer and run the menu until it ends."""
    from tandem.host import (
        AutoApprover,
        ConsoleApprover,
        ConsolePrompter,
        HostClient,
        InteractiveDriver,
        LiteLLMGenerator,
        QueryRunner,
        SamplingHandler,
    )
    from tandem.host.approval import Approver
    from tandem.protocol.transport import StdioTransport

    generator = LiteLLMGenerator(settings.model)
    approver: Approver = (
        AutoApprover()
        if settings.auto_approve
        else ConsoleApprover(timeout=settings.approval_timeout, console=console)
    )
    sampling = SamplingHandler(generator, approver, console=console)
    transport = StdioTransport(settings.peer_command)

    async with HostClient(
        transport, sampling_handler=sampling, request_timeout=settings.request_timeout
    ) as client:
        catalog = await client.discover()
        runner = QueryRunner(
            client, generator, catalog.tools, max_steps=settings.max_query_steps
        )
        driver = InteractiveDriver(
            client,
            catalog,
            ConsolePrompter(console),
            sampling=sampling,
            query_runner=runner,
            console=console,
        )
        await driver.run()
