"""Anthropic stream aggregation: block-structured events.

Events arrive as ``message_start``, then per content block a
``content_block_start`` / ``content_block_delta`` * / ``content_block_stop``
run, then ``message_delta`` (carrying the stop reason) and ``message_stop``.
A ``tool_use`` block may also arrive whole, in which case it is stored as-is.
"""

from __future__ import annotations

import logging
from typing import Any

from chatbridge.core.streaming.aggregator import StreamAggregator, ToolCallSlot, as_mapping
from chatbridge.core.streaming.finish import AnthropicFinishReasons

logger = logging.getLogger(__name__)


class AnthropicStreamAggregator(StreamAggregator):
    """Aggregates Anthropic Messages API stream events."""

    normalizer = AnthropicFinishReasons()

    def observe(self, event: Any) -> None:
        data = as_mapping(event)
        event_type = data.get("type")

        if event_type == "message_start":
            message = as_mapping(data.get("message"))
            self._record_usage(message.get("usage"))
            self._record_finish(message.get("stop_reason"))
        elif event_type == "content_block_start":
            self._start_block(_index(data), as_mapping(data.get("content_block")))
        elif event_type == "content_block_delta":
            self._apply_delta(_index(data), as_mapping(data.get("delta")))
        elif event_type == "message_delta":
            delta = as_mapping(data.get("delta"))
            self._record_finish(delta.get("stop_reason"))
            self._record_usage(data.get("usage"))
        elif event_type == "tool_use":
            self._store_tool_block(self._next_index(), data)
        elif event_type in ("content_block_stop", "message_stop", "ping"):
            pass
        else:
            logger.debug("Ignoring unrecognized stream event: %r", event_type)

    def _start_block(self, index: int, block: Any) -> None:
        block_type = block.get("type")
        if block_type == "text":
            self._emit_text(block.get("text"))
        elif block_type == "tool_use":
            self._store_tool_block(index, block)

    def _store_tool_block(self, index: int, block: Any) -> None:
        raw_input = block.get("input")
        self.state.tool_slots[index] = ToolCallSlot(
            id=block.get("id") or "",
            name=block.get("name") or "",
            arguments=dict(raw_input) if isinstance(raw_input, dict) else None,
        )

    def _apply_delta(self, index: int, delta: Any) -> None:
        delta_type = delta.get("type")
        if delta_type == "text_delta":
            self._emit_text(delta.get("text"))
        elif delta_type == "input_json_delta":
            slot = self.state.tool_slots.setdefault(index, ToolCallSlot())
            slot.append(arguments=delta.get("partial_json"))

    def _next_index(self) -> int:
        return max(self.state.tool_slots, default=-1) + 1


def _index(data: Any) -> int:
    index = data.get("index")
    return index if isinstance(index, int) else 0
