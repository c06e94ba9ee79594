"""``chatbridge chat``: run one live turn against the configured provider."""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click

from chatbridge.cli_commands._output import console, load_history, load_tools, print_message
from chatbridge.core.interface.config import ModelConfig
from chatbridge.core.interface.models import ToolInvocation
from chatbridge.core.session.prompts import PromptLibrary
from chatbridge.core.session.session import TurnRequest, create_session
from chatbridge.core.streaming.handlers import StreamHandlers
from chatbridge.protocols.errors import ChatBridgeError, PromptNotFoundError, ProviderCallError


@click.command()
@click.argument("history", type=click.Path(exists=True, path_type=Path))
@click.option("--model", "-m", default=None, help="LiteLLM model id (default: from LLM_PROVIDER).")
@click.option("--prompts", "prompts_file", type=click.Path(exists=True, path_type=Path), default=None)
@click.option("--prompt-key", "-k", default=None, help="System prompt key to use.")
@click.option("--tools", "tools_file", type=click.Path(exists=True, path_type=Path), default=None)
@click.option("--telemetry", is_flag=True, help="Print trace spans to the console.")
@click.option("--json", "as_json", is_flag=True, help="Print the final message as JSON.")
def chat(
    history: Path,
    model: str | None,
    prompts_file: Path | None,
    prompt_key: str | None,
    tools_file: Path | None,
    telemetry: bool,
    as_json: bool,
) -> None:
    """Stream one assistant turn for the conversation in HISTORY."""
    config = ModelConfig.from_env()
    if model:
        config = config.model_copy(update={"model": model})

    try:
        turn = TurnRequest(
            history=load_history(history).messages,
            prompt_key=prompt_key,
            tools=load_tools(tools_file),
        )
        prompts = PromptLibrary.from_file(prompts_file) if prompts_file else None
    except (ChatBridgeError, ValueError) as exc:
        console.print(f"[red]Input error:[/red] {exc}")
        sys.exit(1)

    if prompts is not None and prompt_key:
        try:
            prompts.require(prompt_key)
        except PromptNotFoundError as exc:
            available = ", ".join(prompts.keys()) or "none"
            console.print(f"[red]Input error:[/red] {exc}")
            console.print(f"  Available prompts: {available}")
            sys.exit(1)

    if telemetry:
        from chatbridge.utils.telemetry import configure_telemetry

        configure_telemetry(console=True)

    def _announce(call: ToolInvocation) -> None:
        console.print(f"\n[cyan]Tool requested:[/cyan] {call.name}")

    handlers = StreamHandlers()
    if not as_json:
        handlers.on_text = lambda fragment: console.print(fragment, end="", markup=False)
        handlers.on_tool_use = _announce
    session = create_session(config, prompts=prompts)

    try:
        message = asyncio.run(session.run_turn(turn, handlers))
    except ProviderCallError as exc:
        console.print(f"\n[red]Provider error:[/red] {exc}")
        sys.exit(1)

    print_message(message, as_json=as_json)
