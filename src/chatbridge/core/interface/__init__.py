"""Canonical message model, configuration and outbound transpilation."""

from chatbridge.core.interface.config import ModelConfig
from chatbridge.core.interface.models import (
    CanonicalMessage,
    ContentBlock,
    ConversationHistory,
    FinishReason,
    FinishReasonKind,
    ImageReference,
    TextBlock,
    ToolDeclaration,
    ToolInvocation,
    ToolResultBlock,
    is_tool_result_only,
    normalize_content,
)
from chatbridge.core.interface.transpiler import ProviderRequest, Transpiler
from chatbridge.core.interface.transpilers import AnthropicTranspiler, OpenAITranspiler

__all__ = [
    "AnthropicTranspiler",
    "CanonicalMessage",
    "ContentBlock",
    "ConversationHistory",
    "FinishReason",
    "FinishReasonKind",
    "ImageReference",
    "ModelConfig",
    "OpenAITranspiler",
    "ProviderRequest",
    "TextBlock",
    "ToolDeclaration",
    "ToolInvocation",
    "ToolResultBlock",
    "Transpiler",
    "is_tool_result_only",
    "normalize_content",
]
