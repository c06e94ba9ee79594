"""Provider sessions and the system prompt collaborator."""

from chatbridge.core.session.prompts import PromptCatalog, PromptLibrary
from chatbridge.core.session.session import (
    AnthropicSession,
    OpenAISession,
    ProviderSession,
    TurnRequest,
    create_session,
    get_session_class,
)

__all__ = [
    "AnthropicSession",
    "OpenAISession",
    "PromptCatalog",
    "PromptLibrary",
    "ProviderSession",
    "TurnRequest",
    "create_session",
    "get_session_class",
]
