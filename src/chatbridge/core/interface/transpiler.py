"""Transpiler protocol and the provider request payload it produces.

Each provider has a concrete transpiler that converts a canonical history,
an optional system instruction and an optional tool catalog into a
:class:`ProviderRequest` shaped for that provider.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from pydantic import BaseModel

from chatbridge.core.interface.models import CanonicalMessage, ToolDeclaration


class ProviderRequest(BaseModel):
    """A provider-shaped request: message list plus optional tool declarations."""

    messages: list[dict[str, Any]] = []
    tools: list[dict[str, Any]] | None = None

    def to_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a chat-completion style call.

        ``tools`` is omitted entirely when absent.
        """
        kwargs: dict[str, Any] = {"messages": self.messages}
        if self.tools:
            kwargs["tools"] = self.tools
        return kwargs

    def to_messages_api(self) -> dict[str, Any]:
        """Lower a block-structured request to the Messages API wire shape.

        The leading system entry moves to the top-level ``system`` parameter,
        tool-role entries become ``user`` messages with ``tool_result`` blocks,
        and consecutive same-role messages are merged since the API requires
        strict user/assistant alternation.
        """
        result: dict[str, Any] = {}
        system_parts: list[str] = []
        raw_messages: list[dict[str, Any]] = []

        for msg in self.messages:
            role = msg.get("role")
            if role == "system":
                system_parts.append(_as_text(msg.get("content")))
            elif role == "tool":
                raw_messages.append(
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "tool_result",
                                "tool_use_id": msg.get("tool_call_id"),
                                "content": msg.get("content", ""),
                            }
                        ],
                    }
                )
            else:
                raw_messages.append({"role": role, "content": _lower_blocks(msg.get("content"))})

        if system_parts:
            result["system"] = "\n\n".join(system_parts)
        result["messages"] = _merge_consecutive_roles(raw_messages)
        if self.tools:
            result["tools"] = self.tools
        return result


class Transpiler(Protocol):
    """Protocol for provider-specific outbound adapters."""

    def to_provider_request(
        self,
        history: Sequence[CanonicalMessage],
        system_instruction: str | None = None,
        tool_catalog: Sequence[ToolDeclaration] | None = None,
    ) -> ProviderRequest:
        """Convert canonical history into a provider-specific request.

        Never raises on content shape; unknown shapes degrade to text.
        """
        ...


def serialize_tool_payload(payload: Any) -> str:
    """Flatten a tool-result payload into the string both providers accept."""
    if payload is None:
        return ""
    if isinstance(payload, str):
        return payload
    if isinstance(payload, Sequence) and not isinstance(payload, (bytes, bytearray)):
        parts: list[str] = []
        for part in payload:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, Mapping) and part.get("type") == "text" and isinstance(part.get("text"), str):
                parts.append(part["text"])
            else:
                parts.append(_safe_dumps(part))
        return "\n".join(parts)
    if isinstance(payload, Mapping) and isinstance(payload.get("text"), str):
        return payload["text"]
    return _safe_dumps(payload)


def _safe_dumps(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


def _as_text(content: Any) -> str:
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        return "".join(b.get("text", "") for b in content if isinstance(b, dict) and b.get("type") == "text")
    return ""


def _lower_blocks(content: Any) -> Any:
    """Convert ``image_url`` blocks to the Messages API ``image`` shape."""
    if not isinstance(content, list):
        return content
    lowered: list[Any] = []
    for block in content:
        if isinstance(block, dict) and block.get("type") == "image_url":
            url = block.get("image_url", {}).get("url")
            lowered.append({"type": "image", "source": {"type": "url", "url": url}})
        else:
            lowered.append(block)
    return lowered


def _merge_consecutive_roles(
    messages: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Merge consecutive messages with the same role."""
    merged: list[dict[str, Any]] = []
    for msg in messages:
        if merged and merged[-1]["role"] == msg["role"]:
            merged[-1]["content"] = _merge_content(merged[-1]["content"], msg["content"])
        else:
            merged.append(msg)
    return merged


def _merge_content(
    existing: str | list[dict[str, Any]], new: str | list[dict[str, Any]]
) -> list[dict[str, Any]]:
    """Merge two content values (str or list of blocks) into a single list."""
    result: list[dict[str, Any]] = []
    for item in (existing, new):
        if isinstance(item, str):
            if item:
                result.append({"type": "text", "text": item})
        else:
            result.extend(item)
    return result
