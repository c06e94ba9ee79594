"""OpenAI stream aggregation: delta chunks with index-keyed tool calls."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from chatbridge.core.streaming.aggregator import StreamAggregator, ToolCallSlot, as_mapping
from chatbridge.core.streaming.finish import OpenAIFinishReasons


class OpenAIStreamAggregator(StreamAggregator):
    """Aggregates chat-completion chunks (mappings or LiteLLM stream objects).

    Tool-call fragments are keyed by their ``index``: the first fragment for
    an index opens a slot, later ones append to its name and argument text.
    Fragments for different indices may interleave.
    """

    normalizer = OpenAIFinishReasons()

    def observe(self, event: Any) -> None:
        chunk = as_mapping(event)
        if chunk.get("usage"):
            self._record_usage(chunk["usage"])

        choices = chunk.get("choices")
        if not isinstance(choices, Sequence) or isinstance(choices, str) or not choices:
            return
        choice = as_mapping(choices[0])
        delta = as_mapping(choice.get("delta"))

        self._emit_text(delta.get("content"))
        tool_calls = delta.get("tool_calls")
        if isinstance(tool_calls, Sequence) and not isinstance(tool_calls, str):
            for position, fragment in enumerate(tool_calls):
                self._accumulate_tool_call(position, as_mapping(fragment))

        self._record_finish(choice.get("finish_reason"))

    def _accumulate_tool_call(self, position: int, fragment: Any) -> None:
        index = fragment.get("index")
        if not isinstance(index, int):
            index = position
        function = as_mapping(fragment.get("function"))
        slot = self.state.tool_slots.setdefault(index, ToolCallSlot())
        slot.append(
            id=fragment.get("id"),
            name=function.get("name"),
            arguments=function.get("arguments"),
        )
