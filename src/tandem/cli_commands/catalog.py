"""``tandem catalog`` — list what a peer advertises and exit."""

from __future__ import annotations

import asyncio
import sys

import click

from tandem.cli_commands._output import console, print_catalog


@click.command(context_settings={"ignore_unknown_options": True})
@click.option("--timeout", type=float, default=30.0, show_default=True, help="Request timeout in seconds.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.argument("command", nargs=-1, type=click.UNPROCESSED)
def catalog(timeout: float, as_json: bool, command: tuple[str, ...]) -> None:
    """Print the tools, resources, templates, and prompts of a peer.

    COMMAND (after ``--``) starts the peer; it defaults to ``tandem serve``
    run with the current interpreter.
    """
    from tandem.config import default_peer_command
    from tandem.host.client import Catalog, HostClient
    from tandem.protocol.errors import ProtocolError
    from tandem.protocol.transport import StdioTransport

    peer_command = list(command) or default_peer_command()

    async def _discover() -> Catalog:
        async with HostClient(StdioTransport(peer_command), request_timeout=timeout) as client:
            return await client.discover()

    try:
        found = asyncio.run(_discover())
    except (ProtocolError, OSError) as exc:
        console.print(f"[red]Discovery error:[/red] {exc}")
        sys.exit(1)

    print_catalog(found, as_json=as_json)
