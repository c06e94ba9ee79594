"""Finish-reason normalizers: provider termination codes to one vocabulary."""

from __future__ import annotations

from chatbridge.core.interface.models import FinishReason, FinishReasonKind


class FinishReasonNormalizer:
    """Map a provider's termination code onto :class:`FinishReasonKind`.

    Codes missing from the table pass through as ``provider_specific`` so
    callers can still branch on the raw value. ``None`` maps to ``unknown``.
    """

    table: dict[str, FinishReasonKind] = {}

    def normalize(self, code: str | None) -> FinishReason:
        if not code:
            return FinishReason.unknown()
        kind = self.table.get(code)
        if kind is None:
            return FinishReason.provider_specific(code)
        return FinishReason(kind=kind, code=code)


class AnthropicFinishReasons(FinishReasonNormalizer):
    table = {
        "end_turn": FinishReasonKind.END_OF_TURN,
        "stop_sequence": FinishReasonKind.END_OF_TURN,
        "max_tokens": FinishReasonKind.MAX_TOKENS_REACHED,
        "tool_use": FinishReasonKind.TOOL_INVOCATION_PENDING,
    }


class OpenAIFinishReasons(FinishReasonNormalizer):
    table = {
        "stop": FinishReasonKind.END_OF_TURN,
        "length": FinishReasonKind.MAX_TOKENS_REACHED,
        "tool_calls": FinishReasonKind.TOOL_INVOCATION_PENDING,
        "function_call": FinishReasonKind.TOOL_INVOCATION_PENDING,
    }
