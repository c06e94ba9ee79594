"""chatbridge: canonical conversations in, provider streams out and back."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from chatbridge.core.session.session import TurnRequest as TurnRequest
    from chatbridge.core.session.session import create_session as create_session
    from chatbridge.core.streaming.handlers import StreamHandlers as StreamHandlers

_LAZY_EXPORTS = {
    "create_session": "chatbridge.core.session.session",
    "TurnRequest": "chatbridge.core.session.session",
    "StreamHandlers": "chatbridge.core.streaming.handlers",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'chatbridge' has no attribute {name!r}")
