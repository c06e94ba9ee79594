"""Stream aggregation, finish-reason normalization and callback contract."""

from chatbridge.core.streaming.aggregator import AccumulationState, StreamAggregator, ToolCallSlot
from chatbridge.core.streaming.anthropic import AnthropicStreamAggregator
from chatbridge.core.streaming.finish import (
    AnthropicFinishReasons,
    FinishReasonNormalizer,
    OpenAIFinishReasons,
)
from chatbridge.core.streaming.handlers import StreamHandlers
from chatbridge.core.streaming.openai import OpenAIStreamAggregator

__all__ = [
    "AccumulationState",
    "AnthropicFinishReasons",
    "AnthropicStreamAggregator",
    "FinishReasonNormalizer",
    "OpenAIFinishReasons",
    "OpenAIStreamAggregator",
    "StreamAggregator",
    "StreamHandlers",
    "ToolCallSlot",
]
