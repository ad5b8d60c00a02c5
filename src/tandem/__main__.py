"""Allow ``python -m tandem``."""

from tandem.cli import main

main(prog_name="tandem")
