"""Tests for the canonical message model and content normalization."""

from typing import Any

import pytest
from pydantic import ValidationError

from chatbridge.core.interface.models import (
    CanonicalMessage,
    ConversationHistory,
    FinishReason,
    FinishReasonKind,
    ImageReference,
    TextBlock,
    ToolDeclaration,
    ToolInvocation,
    ToolResultBlock,
    is_tool_result_only,
    normalize_content,
)


class TestNormalizeContent:
    def test_string(self) -> None:
        assert normalize_content("hello") == [TextBlock(text="hello")]

    def test_empty_and_none(self) -> None:
        assert normalize_content("") == []
        assert normalize_content(None) == []

    def test_single_block_mapping(self) -> None:
        blocks = normalize_content({"type": "tool_use", "id": "tu-1", "name": "search", "input": {"q": "x"}})
        assert blocks == [ToolInvocation(id="tu-1", name="search", arguments={"q": "x"})]

    def test_list_of_mixed_blocks(self) -> None:
        raw: list[Any] = [
            "plain",
            {"type": "text", "text": "block"},
            {"type": "tool_result", "tool_use_id": "tu-1", "content": "ok"},
            {"type": "image_url", "image_url": {"url": "https://example.com/a.png"}},
        ]
        blocks = normalize_content(raw)
        assert blocks[0] == TextBlock(text="plain")
        assert blocks[1] == TextBlock(text="block")
        assert blocks[2] == ToolResultBlock(invocation_id="tu-1", payload="ok")
        assert blocks[3] == ImageReference(url="https://example.com/a.png")

    def test_block_protocol_image_shape(self) -> None:
        blocks = normalize_content([{"type": "image", "source": {"type": "url", "url": "https://x/y.png"}}])
        assert blocks == [ImageReference(url="https://x/y.png")]

    def test_tool_use_without_input(self) -> None:
        blocks = normalize_content([{"type": "tool_use", "id": "tu-1", "name": "cart"}])
        assert isinstance(blocks[0], ToolInvocation)
        assert blocks[0].arguments == {}

    def test_tool_result_falls_back_to_id(self) -> None:
        blocks = normalize_content([{"type": "tool_result", "id": "tu-9", "content": "x"}])
        assert blocks == [ToolResultBlock(invocation_id="tu-9", payload="x")]

    def test_non_string_text_is_coerced(self) -> None:
        blocks = normalize_content([{"type": "text", "text": 42}])
        assert blocks == [TextBlock(text="42")]

    def test_unknown_block_type_becomes_text(self) -> None:
        blocks = normalize_content([{"type": "video", "url": "x"}])
        assert len(blocks) == 1
        assert isinstance(blocks[0], TextBlock)
        assert '"video"' in blocks[0].text

    def test_arbitrary_json_value(self) -> None:
        assert normalize_content(42) == [TextBlock(text="42")]
        assert normalize_content(True) == [TextBlock(text="true")]

    def test_unserializable_value_uses_str(self) -> None:
        value = object()
        blocks = normalize_content(value)
        assert blocks == [TextBlock(text=str(value))]

    def test_invalid_tool_use_degrades(self) -> None:
        blocks = normalize_content([{"type": "tool_use", "name": "x", "input": "not-a-dict"}])
        assert isinstance(blocks[0], TextBlock)


class TestIsToolResultOnly:
    def test_only_results(self) -> None:
        content = [{"type": "tool_result", "tool_use_id": "a"}, ToolResultBlock(invocation_id="b")]
        assert is_tool_result_only(content)

    def test_mixed(self) -> None:
        content = [ToolResultBlock(invocation_id="a"), TextBlock(text="hi")]
        assert not is_tool_result_only(content)

    def test_empty_and_string(self) -> None:
        assert not is_tool_result_only([])
        assert not is_tool_result_only("tool_result")
        assert not is_tool_result_only(None)


class TestCanonicalMessage:
    def test_string_content_kept(self) -> None:
        msg = CanonicalMessage.user("Hello")
        assert msg.content == "Hello"
        assert msg.text == "Hello"
        assert msg.blocks == [TextBlock(text="Hello")]

    def test_raw_content_normalized(self) -> None:
        msg = CanonicalMessage(role="assistant", content=[{"type": "text", "text": "a"}, {"weird": 1}])
        assert isinstance(msg.content, list)
        assert msg.content[0] == TextBlock(text="a")
        assert isinstance(msg.content[1], TextBlock)

    def test_none_content(self) -> None:
        msg = CanonicalMessage(role="user", content=None)
        assert msg.content == ""

    def test_frozen(self) -> None:
        msg = CanonicalMessage.user("x")
        with pytest.raises(ValidationError):
            msg.role = "assistant"  # type: ignore[misc]

    def test_assistant_with_invocations(self) -> None:
        call = ToolInvocation(id="c1", name="search", arguments={"q": "ball"})
        msg = CanonicalMessage.assistant("Looking.", tool_invocations=[call])
        assert msg.text == "Looking."
        assert msg.tool_invocations == [call]

    def test_tool_message(self) -> None:
        msg = CanonicalMessage.tool("c1", {"items": []})
        assert msg.role == "tool"
        assert msg.tool_call_id == "c1"
        assert msg.tool_results == [ToolResultBlock(invocation_id="c1", payload={"items": []})]

    def test_to_row_uses_persisted_shape(self) -> None:
        msg = CanonicalMessage(
            role="assistant",
            content=[
                TextBlock(text="hi"),
                ToolInvocation(id="c1", name="search", arguments={"q": "x"}),
                ImageReference(url="https://x/y.png"),
            ],
            finish_reason=FinishReason(kind=FinishReasonKind.TOOL_INVOCATION_PENDING, code="tool_calls"),
        )
        row = msg.to_row()
        assert row["content"][1] == {"type": "tool_use", "id": "c1", "name": "search", "input": {"q": "x"}}
        assert row["content"][2] == {"type": "image_url", "image_url": {"url": "https://x/y.png"}}
        assert row["stop_reason"] == "tool_use"

    def test_row_round_trip(self) -> None:
        original = CanonicalMessage(
            role="user",
            content=[ToolResultBlock(invocation_id="c1", payload="done"), TextBlock(text="thanks")],
        )
        restored = CanonicalMessage.model_validate(original.to_row())
        assert restored.content == original.content


class TestFinishReason:
    def test_unknown(self) -> None:
        reason = FinishReason.unknown()
        assert reason.kind is FinishReasonKind.UNKNOWN
        assert reason.legacy_stop_reason is None

    def test_provider_specific_keeps_code(self) -> None:
        reason = FinishReason.provider_specific("content_filter")
        assert reason.code == "content_filter"
        assert reason.legacy_stop_reason == "content_filter"

    def test_legacy_mapping(self) -> None:
        reason = FinishReason(kind=FinishReasonKind.END_OF_TURN, code="stop")
        assert reason.legacy_stop_reason == "end_turn"


class TestToolDeclaration:
    def test_defaults(self) -> None:
        tool = ToolDeclaration(name="search_shop_catalog")
        assert tool.description == ""
        assert tool.input_schema["type"] == "object"

    def test_none_fields(self) -> None:
        tool = ToolDeclaration.model_validate({"name": "x", "description": None, "input_schema": None})
        assert tool.description == ""
        assert tool.input_schema == {"type": "object", "properties": {}, "additionalProperties": True}


class TestConversationHistory:
    def test_from_rows_skips_invalid(self) -> None:
        rows: list[Any] = [
            None,
            {"role": "user", "content": "hi"},
            {"role": "narrator", "content": "??"},
            "garbage",
            {"role": "tool", "content": "4", "tool_call_id": "c1"},
        ]
        history = ConversationHistory.from_rows(rows)
        assert len(history.messages) == 2
        assert history.messages[1].tool_call_id == "c1"

    def test_row_id_only_identifies_tool_rows(self) -> None:
        rows = [
            {"id": 17, "role": "user", "content": "hi"},
            {"id": 18, "role": "assistant", "content": "hello"},
            {"id": "call_9", "role": "tool", "content": "4"},
            {"id": 20, "role": "tool", "content": "5", "tool_call_id": "call_10"},
        ]
        history = ConversationHistory.from_rows(rows)
        assert [m.tool_call_id for m in history.messages] == [None, None, "call_9", "call_10"]
        assert "17" not in str(history.messages[0].to_row())
