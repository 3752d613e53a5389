from __future__ import annotations

import json
from typing import List

import httpx
import pytest

from turngate_ai.agent_core.providers import (
    OpenAICompatibleProvider,
    ProviderError,
    ProviderOptions,
    StreamDelta,
    ToolCallFragment,
    parse_sse_line,
)
from turngate_ai.agent_core.schemas.domain import Message, MessageRole, ToolCall


def _sse(*chunks: dict) -> bytes:
    lines = [f"data: {json.dumps(c)}\n\n" for c in chunks]
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def _delta(**delta) -> dict:
    return {"choices": [{"index": 0, "delta": delta}]}


class TestParseSseLine:
    def test_content_chunk(self) -> None:
        assert parse_sse_line(f"data: {json.dumps(_delta(content='Hi'))}") == StreamDelta(content="Hi")

    @pytest.mark.parametrize("key", ["reasoning_content", "reasoning"])
    def test_reasoning_chunk(self, key: str) -> None:
        delta = parse_sse_line(f"data: {json.dumps(_delta(**{key: 'hmm'}))}")
        assert delta == StreamDelta(reasoning_content="hmm")

    def test_tool_call_fragment(self) -> None:
        chunk = _delta(tool_calls=[{"index": 0, "id": "call_1", "function": {"name": "f", "arguments": "{\"a"}}])
        delta = parse_sse_line("data: " + json.dumps(chunk))
        assert delta.tool_calls == [ToolCallFragment(index=0, id="call_1", name="f", arguments='{"a')]

    @pytest.mark.parametrize(
        "line",
        [
            "",
            ": keep-alive",
            "event: ping",
            "data: [DONE]",
            "data:",
            'data: {"choices": []}',
            "data: " + json.dumps(_delta()),
        ],
    )
    def test_lines_without_payload(self, line: str) -> None:
        assert parse_sse_line(line) is None

    def test_malformed_json_is_dropped(self, caplog) -> None:
        assert parse_sse_line("data: {oops") is None
        assert "malformed stream chunk" in caplog.text


@pytest.mark.asyncio
async def test_stream_chat_posts_payload_and_decodes_stream() -> None:
    captured: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(request)
        body = _sse(
            _delta(role="assistant"),
            _delta(content="Hel"),
            _delta(content="lo"),
            _delta(tool_calls=[{"index": 0, "id": "c1", "function": {"name": "lookup", "arguments": "{}"}}]),
        )
        return httpx.Response(200, content=body, headers={"content-type": "text/event-stream"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    provider = OpenAICompatibleProvider(api_key="sk-test", model="m-1", base_url="http://mock/v1/", client=client)
    messages = [
        Message(conversation_id="c", role=MessageRole.system, content="sys"),
        Message(
            conversation_id="c",
            role=MessageRole.assistant,
            tool_calls=[ToolCall(id="old", name="lookup", arguments="{}")],
        ),
        Message(conversation_id="c", role=MessageRole.tool, content='{"success": true}', tool_call_id="old"),
    ]
    tools = [{"type": "function", "function": {"name": "lookup", "parameters": {}}}]

    deltas = [d async for d in provider.stream_chat(messages, tools, ProviderOptions(temperature=0.2, max_tokens=99))]
    await client.aclose()

    assert [d.content for d in deltas[:2]] == ["Hel", "lo"]
    assert deltas[2].tool_calls[0].id == "c1"

    (request,) = captured
    assert str(request.url) == "http://mock/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-test"
    payload = json.loads(request.content)
    assert payload["model"] == "m-1"
    assert payload["stream"] is True
    assert (payload["temperature"], payload["max_tokens"]) == (0.2, 99)
    assert payload["tools"] == tools and payload["tool_choice"] == "auto"
    assert [m["role"] for m in payload["messages"]] == ["system", "assistant", "tool"]
    assert payload["messages"][1]["tool_calls"][0]["function"]["name"] == "lookup"
    assert payload["messages"][2]["tool_call_id"] == "old"


@pytest.mark.asyncio
async def test_stream_chat_without_tools_omits_tool_choice() -> None:
    bodies: List[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        bodies.append(json.loads(request.content))
        return httpx.Response(200, content=_sse(_delta(content="ok")))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = OpenAICompatibleProvider(api_key=None, model="m", base_url="http://mock", client=client)
        deltas = [d async for d in provider.stream_chat([], [], ProviderOptions())]

    assert deltas == [StreamDelta(content="ok")]
    assert "tools" not in bodies[0] and "tool_choice" not in bodies[0]


@pytest.mark.asyncio
async def test_non_200_raises_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": "rate limited"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        provider = OpenAICompatibleProvider(api_key="k", model="m", base_url="http://mock", client=client)
        with pytest.raises(ProviderError, match="HTTP 429"):
            async for _ in provider.stream_chat([], [], ProviderOptions()):
                pass  # pragma: no cover
