"""OpenAI-compatible streaming chat-completions adaptor.

Works against any endpoint that speaks the ``/chat/completions`` protocol with
``stream=true`` (OpenAI, DeepSeek, Gemini's OpenAI-compatible endpoint, local
servers). Server-sent ``data:`` lines are decoded into ``StreamDelta`` objects;
``reasoning_content`` is forwarded when the endpoint provides it.
"""

import json
import logging
from typing import Any, AsyncIterator, Optional, Sequence

import httpx

from ..schemas.domain import Message
from .base import ProviderOptions, StreamDelta, ToolCallFragment

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """The provider answered with a non-success status or a malformed stream."""


class OpenAICompatibleProvider:
    """Streaming adaptor for OpenAI-compatible endpoints.

    Args:
        api_key: Bearer token sent with every request.
        model: Model name.
        base_url: Base URL of the API, without the ``/chat/completions`` suffix.
        client: Optional pre-built ``httpx.AsyncClient`` (connection reuse, tests).
        timeout: Per-request timeout in seconds when no client is given.
    """

    def __init__(
        self,
        *,
        api_key: Optional[str],
        model: str,
        base_url: str = "https://api.openai.com/v1",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._client = client
        self._timeout = timeout

    def _build_payload(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        options: ProviderOptions,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_provider_dict() for m in messages],
            "stream": True,
            "temperature": options.temperature,
            "max_tokens": options.max_tokens,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        return payload

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def stream_chat(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
        options: ProviderOptions,
    ) -> AsyncIterator[StreamDelta]:
        payload = self._build_payload(messages, tools, options)
        if self._client is not None:
            async for delta in self._stream(self._client, payload):
                yield delta
            return
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            async for delta in self._stream(client, payload):
                yield delta

    async def _stream(self, client: httpx.AsyncClient, payload: dict[str, Any]) -> AsyncIterator[StreamDelta]:
        async with client.stream(
            "POST", f"{self.base_url}/chat/completions", json=payload, headers=self._headers()
        ) as response:
            if response.status_code != 200:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise ProviderError(f"Provider returned HTTP {response.status_code}: {body[:500]}")
            async for line in response.aiter_lines():
                delta = parse_sse_line(line)
                if delta is not None:
                    yield delta


def parse_sse_line(line: str) -> Optional[StreamDelta]:
    """Decode one SSE line of a chat-completions stream.

    Returns None for blank lines, comments, the ``[DONE]`` sentinel and chunks
    without a delta.
    """
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:") :].strip()
    if not data or data == "[DONE]":
        return None
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError:
        logger.warning("Dropping malformed stream chunk: %s", data[:200])
        return None

    choices = chunk.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}

    fragments = []
    for raw in delta.get("tool_calls") or []:
        fn = raw.get("function") or {}
        fragments.append(
            ToolCallFragment(
                index=raw.get("index"),
                id=raw.get("id"),
                name=fn.get("name"),
                arguments=fn.get("arguments"),
            )
        )
    reasoning = delta.get("reasoning_content") or delta.get("reasoning")
    content = delta.get("content")
    if not content and not reasoning and not fragments:
        return None
    return StreamDelta(content=content or None, reasoning_content=reasoning or None, tool_calls=fragments)
