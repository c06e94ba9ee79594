"""Provider-specific transpiler implementations."""

from chatbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from chatbridge.core.interface.transpilers.openai import OpenAITranspiler

__all__ = ["AnthropicTranspiler", "OpenAITranspiler"]
