"""Provider transport layer and error types."""

from chatbridge.protocols.errors import ChatBridgeError, PromptNotFoundError, ProviderCallError
from chatbridge.protocols.transport import (
    LiteLLMChatTransport,
    LiteLLMMessagesTransport,
    ProviderTransport,
)

__all__ = [
    "ChatBridgeError",
    "LiteLLMChatTransport",
    "LiteLLMMessagesTransport",
    "PromptNotFoundError",
    "ProviderCallError",
    "ProviderTransport",
]
