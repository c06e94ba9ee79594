"""Tests for the provider-specific outbound transpilers."""

from typing import Any

from chatbridge.core.interface.models import (
    CanonicalMessage,
    ImageReference,
    TextBlock,
    ToolDeclaration,
    ToolInvocation,
    ToolResultBlock,
)
from chatbridge.core.interface.transpiler import ProviderRequest, serialize_tool_payload
from chatbridge.core.interface.transpilers.anthropic import AnthropicTranspiler
from chatbridge.core.interface.transpilers.openai import OpenAITranspiler

# ---------------------------------------------------------------------------
# Fixtures: sample conversations
# ---------------------------------------------------------------------------


def _simple_history() -> list[CanonicalMessage]:
    return [
        CanonicalMessage.user("Hello"),
        CanonicalMessage.assistant("Hi there!"),
        CanonicalMessage.user("Any snowboards?"),
    ]


def _calls(*ids: str) -> list[ToolInvocation]:
    return [ToolInvocation(id=i, name=f"tool_{i}", arguments={"n": i}) for i in ids]


def _tool_batch_history(result_ids: list[str], extra_text: str | None = None) -> list[CanonicalMessage]:
    results: list[Any] = [ToolResultBlock(invocation_id=i, payload=f"result {i}") for i in result_ids]
    if extra_text:
        results.append(TextBlock(text=extra_text))
    return [
        CanonicalMessage.user("Find a ball"),
        CanonicalMessage.assistant("Searching.", tool_invocations=_calls("a", "b", "c")),
        CanonicalMessage(role="user", content=results),
    ]


_CATALOG = [
    ToolDeclaration(
        name="search_shop_catalog",
        description="Search the catalog",
        input_schema={"type": "object", "properties": {"query": {"type": "string"}}},
    )
]


# ---------------------------------------------------------------------------
# Anthropic Transpiler Tests
# ---------------------------------------------------------------------------


class TestAnthropicTranspiler:
    def setup_method(self) -> None:
        self.transpiler = AnthropicTranspiler()

    def test_leading_system_message(self) -> None:
        request = self.transpiler.to_provider_request(_simple_history(), "Be helpful.")
        assert request.messages[0] == {"role": "system", "content": "Be helpful."}
        assert [m["role"] for m in request.messages[1:]] == ["user", "assistant", "user"]
        assert [m["content"] for m in request.messages[1:]] == ["Hello", "Hi there!", "Any snowboards?"]

    def test_canonical_system_not_duplicated(self) -> None:
        history = [CanonicalMessage.system("Stored prompt"), *_simple_history()]
        request = self.transpiler.to_provider_request(history, "Be helpful.")
        systems = [m for m in request.messages if m["role"] == "system"]
        assert systems == [{"role": "system", "content": "Be helpful."}]

    def test_canonical_system_used_without_instruction(self) -> None:
        history = [CanonicalMessage.system("Stored prompt"), *_simple_history()]
        request = self.transpiler.to_provider_request(history, None)
        assert request.messages[0] == {"role": "system", "content": "Stored prompt"}
        assert len(request.messages) == 4

    def test_tool_use_passthrough(self) -> None:
        request = self.transpiler.to_provider_request(_tool_batch_history(["a", "b", "c"]))
        assistant = request.messages[1]
        assert assistant["role"] == "assistant"
        assert assistant["content"][0] == {"type": "text", "text": "Searching."}
        assert assistant["content"][1] == {"type": "tool_use", "id": "a", "name": "tool_a", "input": {"n": "a"}}

    def test_tool_results_split_per_block(self) -> None:
        request = self.transpiler.to_provider_request(_tool_batch_history(["a", "b", "c"]))
        tool_entries = request.messages[2:]
        assert tool_entries == [
            {"role": "tool", "tool_call_id": "a", "content": "result a"},
            {"role": "tool", "tool_call_id": "b", "content": "result b"},
            {"role": "tool", "tool_call_id": "c", "content": "result c"},
        ]

    def test_tool_role_message(self) -> None:
        history = [
            CanonicalMessage.assistant(tool_invocations=_calls("a")),
            CanonicalMessage(role="tool", content="4", tool_call_id="a"),
        ]
        request = self.transpiler.to_provider_request(history)
        assert request.messages[1] == {"role": "tool", "tool_call_id": "a", "content": "4"}

    def test_tools_pass_through(self) -> None:
        request = self.transpiler.to_provider_request(_simple_history(), None, _CATALOG)
        assert request.tools == [
            {
                "name": "search_shop_catalog",
                "description": "Search the catalog",
                "input_schema": {"type": "object", "properties": {"query": {"type": "string"}}},
            }
        ]

    def test_empty_catalog_omits_tools(self) -> None:
        request = self.transpiler.to_provider_request(_simple_history(), None, [])
        assert request.tools is None
        assert "tools" not in request.to_messages_api()

    def test_image_blocks(self) -> None:
        history = [
            CanonicalMessage.user([TextBlock(text="What is this?"), ImageReference(url="https://x/y.png")])
        ]
        request = self.transpiler.to_provider_request(history)
        assert request.messages[0]["content"][1] == {"type": "image_url", "image_url": {"url": "https://x/y.png"}}


class TestMessagesApiLowering:
    def test_system_extracted_and_tools_folded(self) -> None:
        transpiler = AnthropicTranspiler()
        request = transpiler.to_provider_request(_tool_batch_history(["a", "b"]), "Be helpful.")
        wire = request.to_messages_api()

        assert wire["system"] == "Be helpful."
        roles = [m["role"] for m in wire["messages"]]
        assert roles == ["user", "assistant", "user"]
        results = wire["messages"][2]["content"]
        assert [b["tool_use_id"] for b in results] == ["a", "b"]
        assert all(b["type"] == "tool_result" for b in results)

    def test_images_lowered(self) -> None:
        request = ProviderRequest(
            messages=[
                {"role": "user", "content": [{"type": "image_url", "image_url": {"url": "https://x/y.png"}}]}
            ]
        )
        wire = request.to_messages_api()
        assert wire["messages"][0]["content"][0] == {
            "type": "image",
            "source": {"type": "url", "url": "https://x/y.png"},
        }

    def test_consecutive_users_merged(self) -> None:
        request = ProviderRequest(
            messages=[{"role": "user", "content": "First"}, {"role": "user", "content": "Second"}]
        )
        wire = request.to_messages_api()
        assert len(wire["messages"]) == 1
        texts = [b["text"] for b in wire["messages"][0]["content"]]
        assert texts == ["First", "Second"]


# ---------------------------------------------------------------------------
# OpenAI Transpiler Tests
# ---------------------------------------------------------------------------


class TestOpenAITranspiler:
    def setup_method(self) -> None:
        self.transpiler = OpenAITranspiler()

    def test_simple_history_preserved(self) -> None:
        request = self.transpiler.to_provider_request(_simple_history(), "Be helpful.")
        assert request.messages == [
            {"role": "system", "content": "Be helpful."},
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there!"},
            {"role": "user", "content": "Any snowboards?"},
        ]

    def test_system_moved_first(self) -> None:
        history = [CanonicalMessage.user("Hello"), CanonicalMessage.system("Late system")]
        request = self.transpiler.to_provider_request(history)
        assert request.messages[0] == {"role": "system", "content": "Late system"}
        assert len(request.messages) == 2

    def test_tool_calls_shape(self) -> None:
        history = [
            CanonicalMessage.user("Find a ball"),
            CanonicalMessage.assistant(tool_invocations=_calls("a")),
            CanonicalMessage.user([ToolResultBlock(invocation_id="a", payload="found")]),
        ]
        request = self.transpiler.to_provider_request(history)
        assistant = request.messages[1]
        assert assistant["content"] is None
        assert assistant["tool_calls"] == [
            {"id": "a", "type": "function", "function": {"name": "tool_a", "arguments": '{"n": "a"}'}}
        ]

    def test_exact_replies_in_invocation_order(self) -> None:
        history = _tool_batch_history(["c", "a", "b"])
        request = self.transpiler.to_provider_request(history)
        replies = request.messages[2:]
        assert [r["role"] for r in replies] == ["tool", "tool", "tool"]
        assert [r["tool_call_id"] for r in replies] == ["a", "b", "c"]
        assert [r["content"] for r in replies] == ["result a", "result b", "result c"]

    def test_missing_results_get_empty_replies(self) -> None:
        request = self.transpiler.to_provider_request(_tool_batch_history(["b"]))
        replies = request.messages[2:]
        assert len(replies) == 3
        assert [(r["tool_call_id"], r["content"]) for r in replies] == [
            ("a", ""),
            ("b", "result b"),
            ("c", ""),
        ]

    def test_mismatched_ids_dropped(self) -> None:
        request = self.transpiler.to_provider_request(_tool_batch_history(["zzz"]))
        replies = request.messages[2:]
        assert [r["tool_call_id"] for r in replies] == ["a", "b", "c"]
        assert all(r["content"] == "" for r in replies)

    def test_leftover_text_trails_tool_replies(self) -> None:
        history = _tool_batch_history(["a", "b", "c"], extra_text="Also, any gloves?")
        request = self.transpiler.to_provider_request(history)
        assert [m["role"] for m in request.messages] == ["user", "assistant", "tool", "tool", "tool", "user"]
        assert request.messages[-1] == {"role": "user", "content": "Also, any gloves?"}

    def test_consecutive_tool_role_messages(self) -> None:
        history = [
            CanonicalMessage.assistant("Two lookups.", tool_invocations=_calls("a", "b")),
            CanonicalMessage.tool("b", "B"),
            CanonicalMessage.tool("a", {"text": "A"}),
            CanonicalMessage.user("Thanks"),
        ]
        request = self.transpiler.to_provider_request(history)
        assert request.messages[0]["content"] == "Two lookups."
        assert request.messages[1:3] == [
            {"role": "tool", "tool_call_id": "a", "content": "A"},
            {"role": "tool", "tool_call_id": "b", "content": "B"},
        ]
        assert request.messages[3] == {"role": "user", "content": "Thanks"}

    def test_orphan_invocation_forwarded(self) -> None:
        history = [
            CanonicalMessage.assistant(tool_invocations=_calls("a")),
            CanonicalMessage.user("never mind"),
        ]
        request = self.transpiler.to_provider_request(history)
        assert [m["role"] for m in request.messages] == ["assistant", "user"]

    def test_results_without_invocations(self) -> None:
        history = [CanonicalMessage.user([ToolResultBlock(invocation_id="x", payload=[1, 2])])]
        request = self.transpiler.to_provider_request(history)
        assert request.messages == [{"role": "tool", "tool_call_id": "x", "content": "1\n2"}]

    def test_multimodal_user(self) -> None:
        history = [
            CanonicalMessage.user([TextBlock(text="What is this?"), ImageReference(url="https://x/y.png")])
        ]
        request = self.transpiler.to_provider_request(history)
        content = request.messages[0]["content"]
        assert content[0] == {"type": "text", "text": "What is this?"}
        assert content[1] == {"type": "image_url", "image_url": {"url": "https://x/y.png"}}

    def test_tool_declarations_reshaped(self) -> None:
        request = self.transpiler.to_provider_request(_simple_history(), None, _CATALOG)
        assert request.tools == [
            {
                "type": "function",
                "function": {
                    "name": "search_shop_catalog",
                    "description": "Search the catalog",
                    "parameters": {"type": "object", "properties": {"query": {"type": "string"}}},
                },
            }
        ]

    def test_empty_catalog_omits_tools(self) -> None:
        request = self.transpiler.to_provider_request(_simple_history(), None, [])
        assert request.tools is None
        assert "tools" not in request.to_kwargs()


class TestSerializeToolPayload:
    def test_string(self) -> None:
        assert serialize_tool_payload("ok") == "ok"

    def test_none(self) -> None:
        assert serialize_tool_payload(None) == ""

    def test_list_of_parts(self) -> None:
        payload = ["a", {"type": "text", "text": "b"}, {"k": 1}]
        assert serialize_tool_payload(payload) == 'a\nb\n{"k": 1}'

    def test_mapping_with_text(self) -> None:
        assert serialize_tool_payload({"text": "hi", "extra": 1}) == "hi"

    def test_other_json(self) -> None:
        assert serialize_tool_payload({"products": [1]}) == '{"products": [1]}'
