"""chatbridge CLI entrypoint."""

from __future__ import annotations

import logging
import sys

import click

from chatbridge import __version__


@click.group()
@click.version_option(version=__version__, prog_name="chatbridge")
@click.option("--debug", is_flag=True, help="Enable debug logging on stderr.")
def main(debug: bool) -> None:
    """chatbridge: inspect, replay and run provider turns."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="[%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


# Register subcommands
from chatbridge.cli_commands import register_commands  # noqa: E402

register_commands(main)

if __name__ == "__main__":
    main()
