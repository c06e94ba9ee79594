"""Provider transports: open a streaming call and yield raw events.

Transports are the network boundary. They know nothing about canonical
messages: they take a :class:`ProviderRequest`, call the provider through
LiteLLM and yield provider events in receipt order. Retries, rate limiting
and timeouts are left to LiteLLM and the caller.
"""

from __future__ import annotations

import codecs
import json
import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

import litellm

from chatbridge.core.interface.config import ModelConfig
from chatbridge.core.interface.transpiler import ProviderRequest

logger = logging.getLogger(__name__)


class ProviderTransport(Protocol):
    """Issue one streaming provider call."""

    def stream(self, request: ProviderRequest, config: ModelConfig) -> AsyncIterator[Any]:
        """Yield provider stream events until the provider closes the stream."""
        ...


def _call_kwargs(config: ModelConfig) -> dict[str, Any]:
    kwargs: dict[str, Any] = {
        "model": config.model,
        "max_tokens": config.max_tokens,
        "stream": True,
        **config.extra,
    }
    if config.api_key:
        kwargs["api_key"] = config.api_key
    if config.api_base:
        kwargs["api_base"] = config.api_base
    return kwargs


class LiteLLMChatTransport:
    """Chat-completion streaming via ``litellm.acompletion``."""

    async def stream(self, request: ProviderRequest, config: ModelConfig) -> AsyncIterator[Any]:
        call_kwargs = {**_call_kwargs(config), **request.to_kwargs()}
        # LiteLLM type stubs are incomplete
        response = await litellm.acompletion(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
        async for chunk in response:
            yield chunk


class LiteLLMMessagesTransport:
    """Anthropic Messages streaming via LiteLLM's ``/v1/messages`` interface."""

    async def stream(self, request: ProviderRequest, config: ModelConfig) -> AsyncIterator[Any]:
        call_kwargs = {**_call_kwargs(config), **request.to_messages_api()}
        response = await litellm.anthropic.messages.acreate(**call_kwargs)  # pyright: ignore[reportUnknownMemberType]
        decoder = SSEDecoder()
        async for chunk in response:
            for event in decoder.feed(chunk):
                yield event
        for event in decoder.flush():
            yield event


class SSEDecoder:
    """Reassemble server-sent-events ``data:`` lines across raw chunks.

    LiteLLM may hand back the Messages stream as raw bytes cut at arbitrary
    offsets, so a line (or a multi-byte character) can straddle two chunks.
    Only complete lines are decoded; the unfinished tail waits for the next
    chunk or for :meth:`flush`. Already-decoded events (mappings or SDK
    objects) pass through unchanged.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""

    def feed(self, chunk: Any) -> list[Any]:
        if isinstance(chunk, (bytes, bytearray)):
            chunk = self._utf8.decode(bytes(chunk))
        if not isinstance(chunk, str):
            return [chunk]

        lines = (self._pending + chunk).split("\n")
        self._pending = lines.pop()
        return _decode_lines(lines)

    def flush(self) -> list[Any]:
        """Decode whatever is left once the stream has ended."""
        tail = self._pending + self._utf8.decode(b"", final=True)
        self._pending = ""
        return _decode_lines([tail])


def _decode_lines(lines: list[str]) -> list[Any]:
    events: list[Any] = []
    for line in lines:
        line = line.strip()
        if not line.startswith("data:"):
            continue
        payload = line[len("data:") :].strip()
        if not payload or payload == "[DONE]":
            continue
        try:
            events.append(json.loads(payload))
        except json.JSONDecodeError:
            logger.warning("Skipping undecodable stream line: %s", payload)
    return events
