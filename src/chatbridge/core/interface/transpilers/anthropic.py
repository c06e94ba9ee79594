"""Anthropic transpiler: block-structured assistant messages.

Key differences from the canonical model:
- The system instruction becomes one leading system entry.
- Assistant messages keep their content-block shape; ``tool_use`` blocks
  pass through unchanged.
- Each tool result is its own tool-role entry, so a batch of N results is
  split into N entries.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from chatbridge.core.interface.models import (
    CanonicalMessage,
    ImageReference,
    TextBlock,
    ToolDeclaration,
    ToolInvocation,
    ToolResultBlock,
    is_tool_result_only,
)
from chatbridge.core.interface.transpiler import ProviderRequest, serialize_tool_payload


class AnthropicTranspiler:
    """Converts canonical history into a block-structured request."""

    def to_provider_request(
        self,
        history: Sequence[CanonicalMessage],
        system_instruction: str | None = None,
        tool_catalog: Sequence[ToolDeclaration] | None = None,
    ) -> ProviderRequest:
        messages: list[dict[str, Any]] = []

        system_text = system_instruction or _first_system_text(history)
        if system_text:
            messages.append({"role": "system", "content": system_text})

        for msg in history:
            if msg is None or msg.role == "system":
                continue
            if msg.role == "tool" or is_tool_result_only(msg.content):
                messages.extend(self._split_tool_results(msg, offset=len(messages)))
            elif msg.role == "assistant":
                messages.append({"role": "assistant", "content": self._content_to_anthropic(msg)})
            else:
                messages.append({"role": "user", "content": self._content_to_anthropic(msg)})

        tools = [tool.model_dump() for tool in tool_catalog] if tool_catalog else None
        return ProviderRequest(messages=messages, tools=tools or None)

    def _split_tool_results(self, msg: CanonicalMessage, offset: int) -> list[dict[str, Any]]:
        """One tool-role entry per ``tool_result`` block."""
        results = msg.tool_results
        if not results:
            return [
                {
                    "role": "tool",
                    "tool_call_id": msg.tool_call_id or f"tool_{offset}",
                    "content": msg.text,
                }
            ]

        entries: list[dict[str, Any]] = []
        for result in results:
            call_id = result.invocation_id or msg.tool_call_id or f"tool_{offset + len(entries)}"
            entries.append(
                {
                    "role": "tool",
                    "tool_call_id": call_id,
                    "content": serialize_tool_payload(result.payload),
                }
            )
        return entries

    def _content_to_anthropic(self, msg: CanonicalMessage) -> str | list[dict[str, Any]]:
        """Plain strings stay strings; block content keeps its block shape."""
        if isinstance(msg.content, str):
            return msg.content

        blocks: list[dict[str, Any]] = []
        for block in msg.content:
            if isinstance(block, TextBlock):
                blocks.append({"type": "text", "text": block.text})
            elif isinstance(block, ToolInvocation):
                blocks.append(
                    {
                        "type": "tool_use",
                        "id": block.id,
                        "name": block.name,
                        "input": block.arguments,
                    }
                )
            elif isinstance(block, ImageReference):
                blocks.append(block.model_dump_row())
            elif isinstance(block, ToolResultBlock):
                # Mixed with other content: keep the result inline.
                blocks.append(
                    {
                        "type": "tool_result",
                        "tool_use_id": block.invocation_id,
                        "content": serialize_tool_payload(block.payload),
                    }
                )
        return blocks


def _first_system_text(history: Sequence[CanonicalMessage]) -> str:
    for msg in history:
        if msg is not None and msg.role == "system" and msg.text:
            return msg.text
    return ""
