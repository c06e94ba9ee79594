"""``chatbridge request``: show the provider request built from a history."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from chatbridge.cli_commands._output import PROVIDERS, console, load_history, load_tools
from chatbridge.core.session.session import get_session_class
from chatbridge.protocols.errors import ChatBridgeError


@click.command()
@click.argument("history", type=click.Path(exists=True, path_type=Path))
@click.option("--provider", "-p", type=click.Choice(PROVIDERS), default="anthropic", show_default=True)
@click.option("--system", "-s", "system_instruction", default=None, help="System instruction text.")
@click.option("--tools", "tools_file", type=click.Path(exists=True, path_type=Path), default=None)
@click.option("--wire", is_flag=True, help="Show the Messages API wire shape (anthropic only).")
def request(
    history: Path,
    provider: str,
    system_instruction: str | None,
    tools_file: Path | None,
    wire: bool,
) -> None:
    """Print the PROVIDER request payload for a HISTORY file."""
    try:
        messages = load_history(history)
        catalog = load_tools(tools_file)
    except (ChatBridgeError, ValueError) as exc:
        console.print(f"[red]Input error:[/red] {exc}")
        sys.exit(1)

    transpiler = get_session_class(provider).transpiler_factory()
    payload = transpiler.to_provider_request(messages.messages, system_instruction, catalog)

    if wire and provider == "anthropic":
        console.print_json(json.dumps(payload.to_messages_api()))
    else:
        console.print_json(payload.model_dump_json(exclude_none=True))
