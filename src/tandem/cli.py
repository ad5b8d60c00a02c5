"""tandem CLI entrypoint."""

from __future__ import annotations

import logging
import sys

import click

from tandem import __version__

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.version_option(version=__version__, prog_name="tandem")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Log level; logs always go to stderr.",
)
def main(log_level: str) -> None:
    """tandem — run a tool peer, or a model host that drives one."""
    logging.basicConfig(stream=sys.stderr, level=log_level.upper(), format=LOG_FORMAT)


# Register subcommands
from tandem.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
