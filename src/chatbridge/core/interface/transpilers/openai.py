"""OpenAI transpiler: flattens canonical history into chat-completion messages.

Structural rules the provider enforces:
- A system message, if present, is the first entry.
- An assistant message with tool calls carries ``content=None`` when it has
  no text, plus a ``tool_calls`` array with JSON-string arguments.
- Every issued tool call is answered by exactly one tool message, and those
  replies immediately follow the assistant entry.
- Text that accompanies a tool-result batch goes in a user message placed
  after all tool replies.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any

from chatbridge.core.interface.models import (
    CanonicalMessage,
    ImageReference,
    TextBlock,
    ToolDeclaration,
    ToolInvocation,
    ToolResultBlock,
)
from chatbridge.core.interface.transpiler import ProviderRequest, serialize_tool_payload

logger = logging.getLogger(__name__)


class OpenAITranspiler:
    """Converts canonical history into chat-completion format."""

    def to_provider_request(
        self,
        history: Sequence[CanonicalMessage],
        system_instruction: str | None = None,
        tool_catalog: Sequence[ToolDeclaration] | None = None,
    ) -> ProviderRequest:
        messages: list[dict[str, Any]] = []
        history = [msg for msg in history if msg is not None]

        system_text = system_instruction or next(
            (m.text for m in history if m.role == "system" and m.text), ""
        )
        if system_text:
            messages.append({"role": "system", "content": system_text})

        i = 0
        while i < len(history):
            msg = history[i]
            i += 1
            if msg.role == "system":
                continue

            if msg.role == "assistant":
                messages.append(self._assistant_to_openai(msg))
                invocations = msg.tool_invocations
                if not invocations:
                    continue
                batch, i = _collect_result_batch(history, i)
                if batch:
                    messages.extend(self._answer_invocations(invocations, batch))
                continue

            if _carries_tool_results(msg):
                # Results with no preceding invocations; forwarded as-is.
                batch, i = _collect_result_batch(history, i - 1)
                messages.extend(self._orphan_results(batch))
                continue

            messages.append({"role": "user", "content": self._content_to_openai(msg)})

        tools = tool_specs_to_openai(tool_catalog)
        return ProviderRequest(messages=messages, tools=tools)

    def _assistant_to_openai(self, msg: CanonicalMessage) -> dict[str, Any]:
        result: dict[str, Any] = {"role": "assistant"}
        invocations = msg.tool_invocations
        text = msg.text
        if invocations:
            result["content"] = text or None
            result["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {
                        "name": call.name,
                        "arguments": _serialize_arguments(call.arguments),
                    },
                }
                for call in invocations
            ]
        else:
            result["content"] = text
        return result

    def _answer_invocations(
        self, invocations: list[ToolInvocation], batch: list[CanonicalMessage]
    ) -> list[dict[str, Any]]:
        """Exactly one tool reply per invocation, then any leftover user text."""
        results: dict[str, Any] = {}
        leftovers: list[Any] = []
        for msg in batch:
            for call_id, payload in _results_of(msg):
                results.setdefault(call_id, payload)
            leftovers.extend(_leftover_blocks(msg))

        expected = {call.id for call in invocations}
        unmatched = [call_id for call_id in results if call_id not in expected]
        if unmatched:
            logger.warning("Dropping tool results with unknown invocation ids: %s", unmatched)

        replies: list[dict[str, Any]] = []
        for call in invocations:
            if call.id not in results:
                logger.warning("No tool result for invocation %s (%s); replying empty", call.id, call.name)
            replies.append(
                {
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": serialize_tool_payload(results.get(call.id)),
                }
            )

        trailing = self._leftover_user_message(leftovers)
        if trailing is not None:
            replies.append(trailing)
        return replies

    def _orphan_results(self, batch: list[CanonicalMessage]) -> list[dict[str, Any]]:
        entries: list[dict[str, Any]] = []
        leftovers: list[Any] = []
        for msg in batch:
            for call_id, payload in _results_of(msg):
                entries.append(
                    {
                        "role": "tool",
                        "tool_call_id": call_id or f"tool_{len(entries)}",
                        "content": serialize_tool_payload(payload),
                    }
                )
            leftovers.extend(_leftover_blocks(msg))
        trailing = self._leftover_user_message(leftovers)
        if trailing is not None:
            entries.append(trailing)
        return entries

    def _leftover_user_message(self, blocks: list[Any]) -> dict[str, Any] | None:
        if not blocks:
            return None
        content = self._blocks_to_openai(blocks)
        if not content:
            return None
        return {"role": "user", "content": content}

    def _content_to_openai(self, msg: CanonicalMessage) -> str | list[dict[str, Any]]:
        if isinstance(msg.content, str):
            return msg.content
        return self._blocks_to_openai(msg.content)

    def _blocks_to_openai(self, blocks: Sequence[Any]) -> str | list[dict[str, Any]]:
        """Single text blocks collapse to a string; anything else is a parts array."""
        if len(blocks) == 1 and isinstance(blocks[0], TextBlock):
            return blocks[0].text

        parts: list[dict[str, Any]] = []
        for block in blocks:
            if isinstance(block, TextBlock):
                parts.append({"type": "text", "text": block.text})
            elif isinstance(block, ImageReference):
                parts.append({"type": "image_url", "image_url": {"url": block.url}})
            elif isinstance(block, ToolInvocation):
                parts.append({"type": "text", "text": f"[Tool call: {block.name}]"})
        return parts


def tool_specs_to_openai(
    tool_catalog: Sequence[ToolDeclaration] | None,
) -> list[dict[str, Any]] | None:
    """Reshape catalog entries into function tools; ``None`` when empty."""
    if not tool_catalog:
        return None
    return [
        {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": tool.input_schema,
            },
        }
        for tool in tool_catalog
    ]


def _carries_tool_results(msg: CanonicalMessage) -> bool:
    return msg.role == "tool" or bool(msg.tool_results)


def _results_of(msg: CanonicalMessage) -> list[tuple[str, Any]]:
    """``(invocation_id, payload)`` pairs carried by *msg*.

    A tool-role message without result blocks answers ``tool_call_id`` with
    its whole text.
    """
    results = [(block.invocation_id or msg.tool_call_id or "", block.payload) for block in msg.tool_results]
    if not results and msg.role == "tool":
        results.append((msg.tool_call_id or "", msg.text))
    return results


def _leftover_blocks(msg: CanonicalMessage) -> list[Any]:
    if msg.role == "tool":
        return []
    return [block for block in msg.blocks if not isinstance(block, ToolResultBlock)]


def _collect_result_batch(
    history: list[CanonicalMessage], start: int
) -> tuple[list[CanonicalMessage], int]:
    """Gather the consecutive tool-bearing messages starting at *start*."""
    end = start
    while end < len(history) and _carries_tool_results(history[end]):
        end += 1
    return history[start:end], end


def _serialize_arguments(args: dict[str, Any]) -> str:
    """Serialize tool call arguments to a JSON string."""
    return json.dumps(args)
