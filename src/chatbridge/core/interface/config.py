"""Model configuration: provider, model name, request limits."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_ANTHROPIC_MODEL = "anthropic/claude-3-5-sonnet-latest"
DEFAULT_OPENAI_MODEL = "openai/gpt-4o"
DEFAULT_PROMPT_KEY = "standardAssistant"

_ANTHROPIC_PREFIXES = ("anthropic", "claude")


class ModelConfig(BaseModel):
    """Configuration for a specific model/provider combination.

    The ``model`` field uses LiteLLM's naming convention:
    ``provider/model_name`` (e.g. ``openai/gpt-4o``,
    ``anthropic/claude-3-5-sonnet-latest``).
    """

    model: str
    api_key: str | None = None
    api_base: str | None = None
    max_tokens: int = 2000
    default_prompt_key: str = DEFAULT_PROMPT_KEY
    extra: dict[str, Any] = Field(default_factory=lambda: dict[str, Any]())

    @property
    def provider(self) -> str:
        """Either ``anthropic`` (block protocol) or ``openai`` (delta protocol)."""
        prefix = self.model.split("/", 1)[0] if "/" in self.model else ""
        if prefix in _ANTHROPIC_PREFIXES or self.model.startswith("claude"):
            return "anthropic"
        return "openai"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ModelConfig:
        """Build a config from ``LLM_PROVIDER`` and the provider API key.

        ``LLM_PROVIDER`` is ``claude`` (default) or ``openai``; ``LLM_MODEL``
        overrides the default model for that provider.
        """
        env = os.environ if environ is None else environ
        provider = env.get("LLM_PROVIDER", "claude").lower()
        if provider == "openai":
            model = env.get("LLM_MODEL") or DEFAULT_OPENAI_MODEL
            api_key = env.get("OPENAI_API_KEY")
        else:
            model = env.get("LLM_MODEL") or DEFAULT_ANTHROPIC_MODEL
            api_key = env.get("CLAUDE_API_KEY") or env.get("ANTHROPIC_API_KEY")
        return cls(model=model, api_key=api_key)
