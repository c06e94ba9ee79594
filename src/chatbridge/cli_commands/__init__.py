"""CLI subcommand registration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all subcommands on the CLI group."""
    from chatbridge.cli_commands.chat import chat
    from chatbridge.cli_commands.replay import replay
    from chatbridge.cli_commands.request import request

    cli.add_command(request)
    cli.add_command(replay)
    cli.add_command(chat)
