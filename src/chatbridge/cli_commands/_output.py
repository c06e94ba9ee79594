"""Shared CLI input loaders and output formatters."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from rich.console import Console
from rich.table import Table

from chatbridge.core.interface.models import CanonicalMessage, ConversationHistory, ToolDeclaration
from chatbridge.protocols.errors import ChatBridgeError

console = Console()

PROVIDERS = ("anthropic", "openai")


def load_history(path: Path) -> ConversationHistory:
    """Read a history file: a list of rows, or a mapping with ``messages``."""
    data = _load_structured(path)
    if isinstance(data, dict):
        data = data.get("messages", [])
    if not isinstance(data, list):
        raise ChatBridgeError(f"{path} must contain a list of messages")
    return ConversationHistory.from_rows(data)


def load_tools(path: Path | None) -> list[ToolDeclaration]:
    """Read a tool catalog file (list of ``{name, description, input_schema}``)."""
    if path is None:
        return []
    data = _load_structured(path)
    if isinstance(data, dict):
        data = data.get("tools", [])
    if not isinstance(data, list):
        raise ChatBridgeError(f"{path} must contain a list of tools")
    return [ToolDeclaration.model_validate(item) for item in data]


def load_events(path: Path) -> list[Any]:
    """Read a recorded stream: one JSON event per line, blank lines skipped."""
    events: list[Any] = []
    for number, line in enumerate(path.read_text(encoding="utf-8").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            events.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise ChatBridgeError(f"{path}:{number}: invalid JSON event: {exc}") from exc
    return events


def _load_structured(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ChatBridgeError(f"Cannot read {path}: {exc}") from exc


def print_message(message: CanonicalMessage, *, as_json: bool = False) -> None:
    """Pretty-print a finalized assistant message."""
    if as_json:
        console.print_json(json.dumps(message.to_row()))
        return

    reason = message.finish_reason
    console.print(f"\n[bold]Finish reason:[/bold] {reason.kind.value if reason else '-'}")
    if reason is not None and reason.code:
        console.print(f"  Provider code: {reason.code}")

    invocations = message.tool_invocations
    if invocations:
        table = Table(title="Tool Invocations")
        table.add_column("Id", style="cyan")
        table.add_column("Name")
        table.add_column("Arguments")
        for call in invocations:
            table.add_row(call.id, call.name, _truncate(json.dumps(call.arguments)))
        console.print(table)


def _truncate(text: str, max_len: int = 80) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."
