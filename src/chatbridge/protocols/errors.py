"""Shared error types for provider calls and prompt lookup."""

from __future__ import annotations

from typing import Any


class ChatBridgeError(Exception):
    """Base error for all chatbridge failures."""


class ProviderCallError(ChatBridgeError):
    """The provider transport failed (network, authentication, rate limit...).

    Carries whatever status and message the provider reported. Callers decide
    how to present it and whether to retry the whole turn.
    """

    def __init__(self, provider: str, message: str = "", status_code: int | None = None) -> None:
        self.provider = provider
        self.message = message
        self.status_code = status_code
        detail = f"{provider} call failed"
        if status_code is not None:
            detail += f" ({status_code})"
        if message:
            detail += f": {message}"
        super().__init__(detail)

    @classmethod
    def from_exception(cls, provider: str, exc: BaseException) -> ProviderCallError:
        """Wrap a transport exception, keeping its reported status."""
        status: Any = getattr(exc, "status_code", None)
        if status is None:
            status = getattr(getattr(exc, "response", None), "status_code", None)
        message = getattr(exc, "message", None) or str(exc)
        return cls(provider, str(message), status if isinstance(status, int) else None)


class PromptNotFoundError(ChatBridgeError):
    """Requested system prompt does not exist in the catalog."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Prompt not found: {key}")
