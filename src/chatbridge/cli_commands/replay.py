"""``chatbridge replay``: run a recorded stream through an aggregator."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from chatbridge.cli_commands._output import PROVIDERS, console, load_events, print_message
from chatbridge.core.session.session import get_session_class
from chatbridge.core.streaming.handlers import StreamHandlers
from chatbridge.protocols.errors import ChatBridgeError


@click.command()
@click.argument("events", type=click.Path(exists=True, path_type=Path))
@click.option("--provider", "-p", type=click.Choice(PROVIDERS), default="anthropic", show_default=True)
@click.option("--json", "as_json", is_flag=True, help="Print the final message as JSON only.")
def replay(events: Path, provider: str, as_json: bool) -> None:
    """Feed a JSONL file of PROVIDER stream EVENTS through the aggregator."""
    try:
        recorded = load_events(events)
    except ChatBridgeError as exc:
        console.print(f"[red]Input error:[/red] {exc}")
        sys.exit(1)

    handlers = StreamHandlers()
    if not as_json:
        handlers.on_text = lambda fragment: console.print(fragment, end="", markup=False)

    aggregator = get_session_class(provider).aggregator_factory(handlers)
    for event in recorded:
        aggregator.observe(event)
    message = aggregator.finalize()
    asyncio.run(handlers.deliver(message))

    print_message(message, as_json=as_json)
