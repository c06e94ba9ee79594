"""System prompt catalog: resolves a prompt key to prompt text."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol

import yaml

from chatbridge.protocols.errors import ChatBridgeError, PromptNotFoundError


class PromptCatalog(Protocol):
    """Anything that can look up a system prompt by key."""

    def get(self, key: str) -> str | None: ...


class PromptLibrary:
    """In-memory prompt catalog.

    Loads the storefront prompt file shape::

        systemPrompts:
          standardAssistant:
            content: "You are a helpful shopping assistant..."
    """

    def __init__(self, prompts: Mapping[str, str] | None = None) -> None:
        self._prompts = dict(prompts or {})

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> PromptLibrary:
        entries = data.get("systemPrompts", data)
        prompts: dict[str, str] = {}
        if isinstance(entries, Mapping):
            for key, entry in entries.items():
                if isinstance(entry, Mapping) and isinstance(entry.get("content"), str):
                    prompts[str(key)] = entry["content"]
                elif isinstance(entry, str):
                    prompts[str(key)] = entry
        return cls(prompts)

    @classmethod
    def from_file(cls, path: Path) -> PromptLibrary:
        """Read a JSON or YAML prompt file (YAML is a superset of JSON)."""
        try:
            data: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, yaml.YAMLError) as exc:
            raise ChatBridgeError(f"Cannot load prompts from {path}: {exc}") from exc
        if not isinstance(data, Mapping):
            raise ChatBridgeError(f"Prompt file {path} must contain a mapping")
        return cls.from_mapping(data)

    def get(self, key: str) -> str | None:
        return self._prompts.get(key)

    def require(self, key: str) -> str:
        prompt = self._prompts.get(key)
        if prompt is None:
            raise PromptNotFoundError(key)
        return prompt

    def keys(self) -> list[str]:
        return sorted(self._prompts)
