"""``tandem serve`` — run the users peer over this process's stdio."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from pathlib import Path
from typing import TYPE_CHECKING

import click

from tandem.cli_commands._output import err_console

if TYPE_CHECKING:
    from tandem.users import UserStore

logger = logging.getLogger(__name__)


@click.command()
@click.option(
    "--data",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="TANDEM_DATA",
    default="users.json",
    show_default=True,
    help="JSON file holding the user records.",
)
def serve(data: Path) -> None:
    """Serve the users tools, resources, and prompts on stdin/stdout.

    Meant to be launched by ``tandem host``; stdout carries the protocol, so
    all diagnostics go to stderr.
    """
    from tandem.users import UserStore

    store = UserStore(data)
    logger.info("Serving users from %s", store.path)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(run_peer(store))


async def run_peer(store: UserStore) -> None:
    """Serve *store* until the host closes the connection."""
    from tandem.protocol.session import PeerSession
    from tandem.protocol.transport import StreamTransport
    from tandem.server import PeerServer
    from tandem.users import build_user_registry

    # The registry samples through the session it is served on.
    session = PeerSession(StreamTransport.from_stdio())
    server = PeerServer(session, build_user_registry(store, session))
    try:
        await server.serve()
    except OSError as exc:
        err_console.print(f"[red]Peer error:[/red] {exc}")
        raise SystemExit(1) from exc
