"""ProviderSession: one uniform "run a turn" operation per provider.

A session couples a transpiler, a stream aggregator and a transport. The
variant is chosen once, when the session is built, so nothing downstream
branches on provider identity::

    config = ModelConfig(model="anthropic/claude-3-5-sonnet-latest")
    session = create_session(config, prompts=PromptLibrary.from_file(path))
    message = await session.run_turn(TurnRequest(history=rows), handlers)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, ClassVar

from pydantic import BaseModel, field_validator

from chatbridge.core.interface.config import ModelConfig
from chatbridge.core.interface.models import CanonicalMessage, ConversationHistory, ToolDeclaration
from chatbridge.core.interface.transpiler import ProviderRequest, Transpiler
from chatbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from chatbridge.core.interface.transpilers.openai import OpenAITranspiler
from chatbridge.core.session.prompts import PromptCatalog, PromptLibrary
from chatbridge.core.streaming.aggregator import StreamAggregator
from chatbridge.core.streaming.anthropic import AnthropicStreamAggregator
from chatbridge.core.streaming.handlers import StreamHandlers
from chatbridge.core.streaming.openai import OpenAIStreamAggregator
from chatbridge.protocols.errors import ProviderCallError
from chatbridge.protocols.transport import (
    LiteLLMChatTransport,
    LiteLLMMessagesTransport,
    ProviderTransport,
)
from chatbridge.utils.telemetry import (
    ATTR_FINISH_REASON,
    ATTR_HISTORY_LENGTH,
    ATTR_MODEL,
    ATTR_PROMPT_KEY,
    ATTR_PROVIDER,
    ATTR_TOKENS_COMPLETION,
    ATTR_TOKENS_PROMPT,
    ATTR_TOOL_INVOCATIONS,
    get_tracer,
)

logger = logging.getLogger(__name__)

_tracer = get_tracer(__name__)


class TurnRequest(BaseModel):
    """Input for one turn: history, prompt key and tool catalog."""

    history: list[CanonicalMessage] = []
    prompt_key: str | None = None
    tools: list[ToolDeclaration] = []

    @field_validator("history", mode="before")
    @classmethod
    def _coerce_history(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, ConversationHistory):
            return value.messages
        return ConversationHistory.from_rows(value).messages

    @field_validator("tools", mode="before")
    @classmethod
    def _none_tools(cls, value: Any) -> Any:
        return [] if value is None else value


class ProviderSession:
    """Run streaming turns against one provider."""

    provider: ClassVar[str]
    transpiler_factory: ClassVar[Callable[[], Transpiler]]
    aggregator_factory: ClassVar[Callable[[StreamHandlers], StreamAggregator]]
    default_transport: ClassVar[Callable[[], ProviderTransport]]

    def __init__(
        self,
        config: ModelConfig,
        prompts: PromptCatalog | None = None,
        transport: ProviderTransport | None = None,
    ) -> None:
        self.config = config
        self.prompts: PromptCatalog = prompts if prompts is not None else PromptLibrary()
        self.transport = transport if transport is not None else type(self).default_transport()
        self.transpiler = type(self).transpiler_factory()

    def resolve_system_prompt(self, prompt_key: str | None) -> str | None:
        """Look up *prompt_key*, falling back to the configured default key."""
        default_key = self.config.default_prompt_key
        if prompt_key:
            prompt = self.prompts.get(prompt_key)
            if prompt is not None:
                return prompt
            logger.debug("Prompt %r not found, falling back to %r", prompt_key, default_key)
        prompt = self.prompts.get(default_key)
        if prompt is None:
            logger.warning("Default prompt %r not found; running without a system prompt", default_key)
        return prompt

    async def run_turn(
        self,
        turn: TurnRequest,
        handlers: StreamHandlers | None = None,
    ) -> CanonicalMessage:
        """Stream one turn and return the finalized assistant message.

        Handlers see text fragments as they arrive, then the full message,
        then each tool invocation (awaited one at a time). A transport failure
        raises :class:`ProviderCallError`; no message is delivered for it.
        """
        handlers = handlers or StreamHandlers()
        with _tracer.start_as_current_span("session.run_turn") as span:
            span.set_attribute(ATTR_PROVIDER, self.provider)
            span.set_attribute(ATTR_MODEL, self.config.model)
            span.set_attribute(ATTR_HISTORY_LENGTH, len(turn.history))
            if turn.prompt_key:
                span.set_attribute(ATTR_PROMPT_KEY, turn.prompt_key)

            system_instruction = self.resolve_system_prompt(turn.prompt_key)
            request = self.transpiler.to_provider_request(turn.history, system_instruction, turn.tools)

            aggregator = type(self).aggregator_factory(handlers)
            await self._consume(request, aggregator)
            message = aggregator.finalize()

            if message.finish_reason is not None:
                span.set_attribute(ATTR_FINISH_REASON, message.finish_reason.kind.value)
            span.set_attribute(ATTR_TOOL_INVOCATIONS, len(message.tool_invocations))
            usage: dict[str, Any] = message.metadata.get("usage", {})
            prompt_tokens = usage.get("input_tokens", usage.get("prompt_tokens"))
            completion_tokens = usage.get("output_tokens", usage.get("completion_tokens"))
            if prompt_tokens is not None:
                span.set_attribute(ATTR_TOKENS_PROMPT, int(prompt_tokens))
            if completion_tokens is not None:
                span.set_attribute(ATTR_TOKENS_COMPLETION, int(completion_tokens))

            await handlers.deliver(message)
            return message

    async def _consume(self, request: ProviderRequest, aggregator: StreamAggregator) -> None:
        """Feed every stream event to *aggregator*, one at a time.

        Only transport failures are wrapped; errors raised by handlers
        propagate unchanged.
        """
        try:
            iterator = aiter(self.transport.stream(request, self.config))
        except Exception as exc:
            raise ProviderCallError.from_exception(self.provider, exc) from exc
        try:
            while True:
                try:
                    event = await anext(iterator)
                except StopAsyncIteration:
                    break
                except ProviderCallError:
                    raise
                except Exception as exc:
                    raise ProviderCallError.from_exception(self.provider, exc) from exc
                aggregator.observe(event)
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()


class AnthropicSession(ProviderSession):
    """Block-structured protocol session."""

    provider = "anthropic"
    transpiler_factory = AnthropicTranspiler
    aggregator_factory = AnthropicStreamAggregator
    default_transport = LiteLLMMessagesTransport


class OpenAISession(ProviderSession):
    """Delta chat-completion protocol session."""

    provider = "openai"
    transpiler_factory = OpenAITranspiler
    aggregator_factory = OpenAIStreamAggregator
    default_transport = LiteLLMChatTransport


_SESSIONS: dict[str, type[ProviderSession]] = {
    "anthropic": AnthropicSession,
    "openai": OpenAISession,
}


def get_session_class(provider: str) -> type[ProviderSession]:
    """Return the session variant for a provider (``openai`` for unknown names)."""
    return _SESSIONS.get(provider, OpenAISession)


def create_session(
    config: ModelConfig,
    prompts: PromptCatalog | None = None,
    transport: ProviderTransport | None = None,
) -> ProviderSession:
    """Build the session variant matching ``config.provider``."""
    return get_session_class(config.provider)(config, prompts=prompts, transport=transport)
