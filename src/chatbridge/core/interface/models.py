"""Canonical message model: the provider-neutral shape of a conversation turn.

Orchestration code (persistence, UI rendering, the tool loop) only ever sees
these types. Transpilers convert them into provider request payloads and the
streaming aggregators convert provider events back into them.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Content Blocks: closed set of content variants
# ---------------------------------------------------------------------------


class _Block(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


class TextBlock(_Block):
    """Plain text content block."""

    type: Literal["text"] = "text"
    text: str


class ToolInvocation(_Block):
    """An assistant's request to call a named tool.

    Serialized with the ``input`` alias, which is the shape persisted rows use.
    """

    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict, alias="input")


class ToolResultBlock(_Block):
    """Outcome of a tool invocation, correlated by ``invocation_id``."""

    type: Literal["tool_result"] = "tool_result"
    invocation_id: str = Field(alias="tool_use_id")
    payload: Any = Field(default="", alias="content")


class ImageReference(_Block):
    """Image referenced by URL."""

    type: Literal["image_url"] = "image_url"
    url: str

    def model_dump_row(self) -> dict[str, Any]:
        """Return the persisted ``image_url`` row shape."""
        return {"type": "image_url", "image_url": {"url": self.url}}


ContentBlock = Annotated[
    TextBlock | ToolInvocation | ToolResultBlock | ImageReference,
    Field(discriminator="type"),
]

_block_adapter: TypeAdapter[Any] = TypeAdapter(ContentBlock)

_BLOCK_TYPES = (TextBlock, ToolInvocation, ToolResultBlock, ImageReference)


# ---------------------------------------------------------------------------
# Normalization helpers
# ---------------------------------------------------------------------------


def normalize_content(raw: Any) -> list[Any]:
    """Coerce any raw content value into a list of content blocks.

    Accepts a string, a single block (model or mapping with a ``type`` key),
    a sequence of blocks, or an arbitrary JSON value. Shapes that are not
    recognized become a text block holding their JSON serialization.
    """
    if raw is None:
        return []
    if isinstance(raw, str):
        return [TextBlock(text=raw)] if raw else []
    if isinstance(raw, _BLOCK_TYPES):
        return [raw]
    if isinstance(raw, Mapping):
        return [_normalize_block(raw)]
    if isinstance(raw, Sequence) and not isinstance(raw, (bytes, bytearray)):
        return [_normalize_block(item) for item in raw]
    return [TextBlock(text=_stringify(raw))]


def is_tool_result_only(content: Any) -> bool:
    """True iff *content* is a non-empty block sequence of only tool results."""
    if isinstance(content, (str, bytes, bytearray)) or not isinstance(content, Sequence):
        return False
    if not content:
        return False
    return all(_is_tool_result(block) for block in content)


def _is_tool_result(block: Any) -> bool:
    if isinstance(block, ToolResultBlock):
        return True
    return isinstance(block, Mapping) and block.get("type") == "tool_result"


def _normalize_block(block: Any) -> Any:
    if isinstance(block, _BLOCK_TYPES):
        return block
    if isinstance(block, str):
        return TextBlock(text=block)
    if not isinstance(block, Mapping):
        return TextBlock(text="" if block is None else _stringify(block))

    data = dict(block)
    block_type = data.get("type")
    if block_type == "text" and not isinstance(data.get("text"), str):
        text = data.get("text")
        data["text"] = "" if text is None else str(text)
    elif block_type == "tool_use" and data.get("input") is None and "arguments" not in data:
        data["input"] = {}
    elif block_type == "tool_result" and not ({"tool_use_id", "invocation_id"} & data.keys()):
        data["tool_use_id"] = str(data.get("id") or "")
    elif block_type == "image_url" and isinstance(data.get("image_url"), Mapping):
        data = {"type": "image_url", "url": data["image_url"].get("url")}
    elif block_type == "image" and isinstance(data.get("source"), Mapping):
        data = {"type": "image_url", "url": data["source"].get("url")}

    try:
        return _block_adapter.validate_python(data)
    except ValidationError:
        return TextBlock(text=_stringify(block))


def _stringify(value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return str(value)


# ---------------------------------------------------------------------------
# Finish reasons
# ---------------------------------------------------------------------------


class FinishReasonKind(str, Enum):
    """Canonical vocabulary for why a turn stopped generating."""

    END_OF_TURN = "end_of_turn"
    MAX_TOKENS_REACHED = "max_tokens_reached"
    TOOL_INVOCATION_PENDING = "tool_invocation_pending"
    PROVIDER_SPECIFIC = "provider_specific"
    UNKNOWN = "unknown"


_LEGACY_STOP_REASONS = {
    FinishReasonKind.END_OF_TURN: "end_turn",
    FinishReasonKind.MAX_TOKENS_REACHED: "max_tokens",
    FinishReasonKind.TOOL_INVOCATION_PENDING: "tool_use",
}


class FinishReason(BaseModel):
    """A normalized finish reason, keeping the raw provider code."""

    model_config = ConfigDict(frozen=True)

    kind: FinishReasonKind
    code: str | None = None

    @classmethod
    def unknown(cls) -> FinishReason:
        return cls(kind=FinishReasonKind.UNKNOWN)

    @classmethod
    def provider_specific(cls, code: str) -> FinishReason:
        return cls(kind=FinishReasonKind.PROVIDER_SPECIFIC, code=code)

    @property
    def legacy_stop_reason(self) -> str | None:
        """The block-protocol stop code used by persisted assistant rows."""
        if self.kind is FinishReasonKind.PROVIDER_SPECIFIC:
            return self.code
        return _LEGACY_STOP_REASONS.get(self.kind)


# ---------------------------------------------------------------------------
# Canonical Message: the core message type
# ---------------------------------------------------------------------------

Role = Literal["system", "user", "assistant", "tool"]


class CanonicalMessage(BaseModel):
    """A single, immutable message in the canonical format.

    Roles:
    - system: instruction/context messages
    - user: human input, or a batch of tool results
    - assistant: LLM-generated messages (may include ``tool_use`` blocks)
    - tool: one tool result, correlated via ``tool_call_id``
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str | list[ContentBlock] = ""
    tool_call_id: str | None = None
    finish_reason: FinishReason | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_content(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, str):
            return value
        return normalize_content(value)

    @property
    def blocks(self) -> list[Any]:
        """Content as a block list, regardless of how it was stored."""
        return normalize_content(self.content)

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        if isinstance(self.content, str):
            return self.content
        return "".join(b.text for b in self.content if isinstance(b, TextBlock))

    @property
    def tool_invocations(self) -> list[ToolInvocation]:
        return [b for b in self.blocks if isinstance(b, ToolInvocation)]

    @property
    def tool_results(self) -> list[ToolResultBlock]:
        return [b for b in self.blocks if isinstance(b, ToolResultBlock)]

    def to_row(self) -> dict[str, Any]:
        """Dump to the persisted row shape (``{"role", "content"}``)."""
        row: dict[str, Any] = {"role": self.role}
        if isinstance(self.content, str):
            row["content"] = self.content
        else:
            row["content"] = [
                b.model_dump_row() if isinstance(b, ImageReference) else b.model_dump(by_alias=True)
                for b in self.content
            ]
        if self.tool_call_id is not None:
            row["tool_call_id"] = self.tool_call_id
        if self.finish_reason is not None:
            row["stop_reason"] = self.finish_reason.legacy_stop_reason
        return row

    @classmethod
    def system(cls, text: str, **metadata: Any) -> CanonicalMessage:
        """Create a system message."""
        return cls(role="system", content=text, metadata=metadata)

    @classmethod
    def user(cls, content: Any, **metadata: Any) -> CanonicalMessage:
        """Create a user message from text or blocks."""
        return cls(role="user", content=content, metadata=metadata)

    @classmethod
    def assistant(
        cls,
        text: str = "",
        tool_invocations: Sequence[ToolInvocation] | None = None,
        **metadata: Any,
    ) -> CanonicalMessage:
        """Create an assistant message with optional tool invocations."""
        blocks: list[Any] = [TextBlock(text=text)] if text else []
        blocks.extend(tool_invocations or [])
        content: Any = blocks if tool_invocations else text
        return cls(role="assistant", content=content, metadata=metadata)

    @classmethod
    def tool(cls, tool_call_id: str, payload: Any, **metadata: Any) -> CanonicalMessage:
        """Create a tool-role message answering one invocation."""
        result = ToolResultBlock(invocation_id=tool_call_id, payload=payload)
        return cls(role="tool", content=[result], tool_call_id=tool_call_id, metadata=metadata)


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------


def _default_input_schema() -> dict[str, Any]:
    return {"type": "object", "properties": {}, "additionalProperties": True}


class ToolDeclaration(BaseModel):
    """A tool the model may call, in the catalog's ``input_schema`` shape."""

    name: str
    description: str = ""
    input_schema: dict[str, Any] = Field(default_factory=_default_input_schema)

    @field_validator("description", mode="before")
    @classmethod
    def _none_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("input_schema", mode="before")
    @classmethod
    def _none_schema(cls, value: Any) -> Any:
        return _default_input_schema() if value is None else value


# ---------------------------------------------------------------------------
# Conversation History: ordered container of messages
# ---------------------------------------------------------------------------

_ROLES = ("system", "user", "assistant", "tool")


class ConversationHistory(BaseModel):
    """An ordered sequence of canonical messages forming a conversation."""

    messages: list[CanonicalMessage] = []

    @classmethod
    def from_rows(cls, rows: Iterable[Any]) -> ConversationHistory:
        """Build a history from persisted ``{"role", "content"}`` rows.

        ``None`` rows and rows with an unknown role are skipped.
        """
        messages: list[CanonicalMessage] = []
        for row in rows:
            if isinstance(row, CanonicalMessage):
                messages.append(row)
                continue
            if not isinstance(row, Mapping) or row.get("role") not in _ROLES:
                logger.debug("Skipping unrecognized history row: %r", row)
                continue
            tool_call_id = row.get("tool_call_id")
            if not tool_call_id and row["role"] == "tool":
                tool_call_id = row.get("id")
            messages.append(
                CanonicalMessage(
                    role=row["role"],
                    content=row.get("content"),
                    tool_call_id=str(tool_call_id) if tool_call_id else None,
                )
            )
        return cls(messages=messages)
