"""Streaming callback contract shared by every provider session."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from chatbridge.core.interface.models import CanonicalMessage, TextBlock, ToolInvocation


@dataclass
class StreamHandlers:
    """Optional callbacks invoked while a turn streams.

    ``on_text`` and ``on_content_block`` fire synchronously for every text
    fragment. ``on_message`` fires once with the finalized message, then
    ``on_tool_use`` is awaited once per invocation, in arrival order.
    """

    on_text: Callable[[str], Any] | None = None
    on_content_block: Callable[[TextBlock], Any] | None = None
    on_message: Callable[[CanonicalMessage], Any] | None = None
    on_tool_use: Callable[[ToolInvocation], Awaitable[Any] | Any] | None = None

    def text(self, fragment: str) -> None:
        if self.on_text is not None:
            self.on_text(fragment)
        if self.on_content_block is not None:
            self.on_content_block(TextBlock(text=fragment))

    async def deliver(self, message: CanonicalMessage) -> None:
        """Hand the finalized message downstream.

        Tool invocations are dispatched strictly one at a time; each
        ``on_tool_use`` call is awaited before the next starts.
        """
        if self.on_message is not None:
            self.on_message(message)
        if self.on_tool_use is None:
            return
        for invocation in message.tool_invocations:
            result = self.on_tool_use(invocation)
            if inspect.isawaitable(result):
                await result
