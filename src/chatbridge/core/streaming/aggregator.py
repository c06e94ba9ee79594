"""Turn-local stream accumulation shared by both provider aggregators.

An aggregator is created when a turn starts, receives every provider event
through :meth:`StreamAggregator.observe` in receipt order, and is discarded
after :meth:`StreamAggregator.finalize`. Nothing here is shared between
turns, so concurrent turns need no locking.
"""

from __future__ import annotations

import abc
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from chatbridge.core.interface.models import (
    CanonicalMessage,
    FinishReason,
    TextBlock,
    ToolInvocation,
)
from chatbridge.core.streaming.finish import FinishReasonNormalizer
from chatbridge.core.streaming.handlers import StreamHandlers

logger = logging.getLogger(__name__)


@dataclass
class ToolCallSlot:
    """A partially delivered tool invocation.

    ``name`` and ``arguments_text`` only ever grow; arguments are parsed once
    the stream ends. ``arguments`` holds a complete input delivered in one
    piece and is used when no argument text arrived.
    """

    id: str = ""
    name: str = ""
    arguments_text: str = ""
    arguments: dict[str, Any] | None = None

    def append(self, *, id: str | None = None, name: str | None = None, arguments: str | None = None) -> None:
        if id and not self.id:
            self.id = id
        if name:
            self.name += name
        if arguments:
            self.arguments_text += arguments


@dataclass
class AccumulationState:
    """Ephemeral per-turn state."""

    text_buffer: list[str] = field(default_factory=list)
    tool_slots: dict[int, ToolCallSlot] = field(default_factory=dict)
    finish_code: str | None = None
    usage: dict[str, Any] = field(default_factory=dict)


class ToolArgumentsError(ValueError):
    """Accumulated argument text did not form a JSON object."""

    def __init__(self, slot: ToolCallSlot, detail: str) -> None:
        self.slot = slot
        super().__init__(f"Invalid arguments for tool {slot.name or '?'} ({slot.id or '?'}): {detail}")


class StreamAggregator(abc.ABC):
    """Consume one turn's provider events and build a canonical message."""

    normalizer: FinishReasonNormalizer

    def __init__(self, handlers: StreamHandlers | None = None) -> None:
        self.handlers = handlers or StreamHandlers()
        self.state = AccumulationState()

    @abc.abstractmethod
    def observe(self, event: Any) -> None:
        """Fold one provider stream event into the accumulation state."""

    def finalize(self, override_finish_reason: FinishReason | None = None) -> CanonicalMessage:
        """Assemble ``[text block?, *tool invocations]`` into one message.

        Invocations whose arguments fail to parse are dropped; the others
        are unaffected.
        """
        content: list[Any] = []
        text = "".join(self.state.text_buffer)
        if text:
            content.append(TextBlock(text=text))

        for index in sorted(self.state.tool_slots):
            slot = self.state.tool_slots[index]
            try:
                content.append(_build_invocation(slot, index))
            except ToolArgumentsError as exc:
                logger.warning("Dropping tool invocation at index %d: %s", index, exc)

        finish_reason = override_finish_reason or self.normalizer.normalize(self.state.finish_code)
        metadata: dict[str, Any] = {}
        if self.state.usage:
            metadata["usage"] = dict(self.state.usage)

        return CanonicalMessage(
            role="assistant",
            content=content,
            finish_reason=finish_reason,
            metadata=metadata,
        )

    def _emit_text(self, fragment: Any) -> None:
        if not isinstance(fragment, str) or not fragment:
            return
        self.state.text_buffer.append(fragment)
        self.handlers.text(fragment)

    def _record_finish(self, code: Any) -> None:
        if code:
            self.state.finish_code = str(code)

    def _record_usage(self, usage: Any) -> None:
        mapping = as_mapping(usage)
        for key, value in mapping.items():
            if isinstance(value, int) and not isinstance(value, bool):
                self.state.usage[key] = value


def _build_invocation(slot: ToolCallSlot, index: int) -> ToolInvocation:
    if slot.arguments_text.strip():
        try:
            arguments = json.loads(slot.arguments_text)
        except json.JSONDecodeError as exc:
            raise ToolArgumentsError(slot, str(exc)) from exc
    elif slot.arguments is not None:
        arguments = slot.arguments
    else:
        arguments = {}

    if not isinstance(arguments, dict):
        raise ToolArgumentsError(slot, f"expected an object, got {type(arguments).__name__}")
    if not slot.name:
        raise ToolArgumentsError(slot, "missing tool name")

    return ToolInvocation(id=slot.id or f"call_{index}", name=slot.name, arguments=arguments)


def as_mapping(value: Any) -> Mapping[str, Any]:
    """View a provider event (mapping or SDK object) as a mapping."""
    if value is None:
        return {}
    if isinstance(value, Mapping):
        return value
    dump = getattr(value, "model_dump", None)
    if callable(dump):
        dumped = dump()
        if isinstance(dumped, Mapping):
            return dumped
    if hasattr(value, "__dict__"):
        return vars(value)
    return {}
