from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence

import httpx
import pytest
from pydantic import BaseModel, Field

from turngate_ai.agent_core.credits import PricedCreditGate, StaticBalanceProvider
from turngate_ai.agent_core.providers.base import ProviderOptions, StreamDelta, ToolCallFragment
from turngate_ai.agent_core.runtime import AgentEngine, EngineConfig, EngineDeps, StaticPromptBuilder
from turngate_ai.agent_core.schemas.domain import (
    Conversation,
    ConversationStatus,
    Message,
    ToolCall,
    ToolCategory,
)
from turngate_ai.agent_core.schemas.events import EngineEvent
from turngate_ai.agent_core.tools import (
    RegistryToolExecutor,
    SchemaParameterValidator,
    ToolContext,
    ToolDefinition,
    ToolRegistry,
    ValidationResult,
)


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    """Fail any real outbound HTTP call; mock transports and ASGI apps still work."""
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://test",
        "http://localhost",
        "http://127.0.0.1",
    )
    orig_async = httpx.AsyncClient.send

    async def offline_async(self, request, *args, **kwargs):
        url_str = str(request.url)
        if any(url_str.startswith(p) for p in allowed_prefixes):
            return await orig_async(self, request, *args, **kwargs)
        raise RuntimeError(f"Outbound HTTP disabled in tests: {url_str}")

    monkeypatch.setattr(httpx.AsyncClient, "send", offline_async)


# ----------------------------------------------------------------------
# In-memory repositories
# ----------------------------------------------------------------------


class InMemoryConversations:
    def __init__(self) -> None:
        self.by_id: Dict[str, Conversation] = {}
        self.status_updates: List[tuple[str, ConversationStatus]] = []

    async def create(self, conversation: Conversation) -> None:
        self.by_id[conversation.id] = conversation.model_copy()

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        c = self.by_id.get(conversation_id)
        return c.model_copy() if c else None

    async def list(self, user_id: Optional[str] = None, limit: int = 100, offset: int = 0) -> list[Conversation]:
        items = [c for c in self.by_id.values() if user_id is None or c.user_id == user_id]
        return items[offset : offset + limit]

    async def update_status(self, conversation_id: str, *, status: ConversationStatus) -> None:
        self.status_updates.append((conversation_id, status))
        c = self.by_id.get(conversation_id)
        if c is not None:
            self.by_id[conversation_id] = c.model_copy(update={"status": status})

    async def update_context(self, conversation_id: str, *, context: dict[str, Any]) -> None:
        c = self.by_id.get(conversation_id)
        if c is not None:
            self.by_id[conversation_id] = c.model_copy(update={"context": dict(context)})

    async def claim(self, conversation_id: str, *, expected_version: int) -> bool:
        c = self.by_id.get(conversation_id)
        if c is None or c.version != expected_version:
            return False
        self.by_id[conversation_id] = c.model_copy(update={"version": expected_version + 1})
        return True


class InMemoryMessages:
    def __init__(self) -> None:
        self.rows: List[Message] = []
        self.patches: List[tuple[str, str, str]] = []

    async def append(self, message: Message) -> Message:
        position = sum(1 for m in self.rows if m.conversation_id == message.conversation_id)
        stored = message.model_copy(update={"position": position})
        self.rows.append(stored)
        return stored

    async def update_assistant(self, message_id, *, content, reasoning_content, tool_calls) -> None:
        for i, m in enumerate(self.rows):
            if m.id == message_id:
                self.rows[i] = m.model_copy(
                    update={"content": content, "reasoning_content": reasoning_content, "tool_calls": list(tool_calls)}
                )

    async def update_tool_call_arguments(self, message_id: str, tool_call_id: str, *, arguments: str) -> bool:
        for i, m in enumerate(self.rows):
            if m.id == message_id:
                calls = [
                    c.model_copy(update={"arguments": arguments}) if c.id == tool_call_id else c for c in m.tool_calls
                ]
                self.rows[i] = m.model_copy(update={"tool_calls": calls})
                self.patches.append((message_id, tool_call_id, arguments))
                return True
        return False

    async def list(self, conversation_id: str) -> list[Message]:
        rows = [m for m in self.rows if m.conversation_id == conversation_id]
        return sorted(rows, key=lambda m: m.position or 0)

    def for_conversation(self, conversation_id: str) -> list[Message]:
        return [m for m in self.rows if m.conversation_id == conversation_id]


# ----------------------------------------------------------------------
# Scripted provider
# ----------------------------------------------------------------------


class ScriptedProvider:
    """Replays one list of deltas per provider call.

    With ``repeat_last`` the final turn is replayed forever.
    """

    def __init__(self, turns: Sequence[Sequence[StreamDelta]], *, repeat_last: bool = False) -> None:
        self.turns = [list(t) for t in turns]
        self.repeat_last = repeat_last
        self.calls: List[List[Message]] = []

    def script(self, *turns: Sequence[StreamDelta]) -> None:
        self.turns.extend(list(t) for t in turns)

    async def stream_chat(self, messages, tools, options: ProviderOptions) -> AsyncIterator[StreamDelta]:
        self.calls.append(list(messages))
        idx = len(self.calls) - 1
        if idx >= len(self.turns):
            if not self.repeat_last:
                raise AssertionError(f"provider called {idx + 1} times, script has {len(self.turns)} turn(s)")
            idx = len(self.turns) - 1
        for delta in self.turns[idx]:
            yield delta


class Turns:
    """Builders for scripted provider turns."""

    @staticmethod
    def text(*chunks: str) -> list[StreamDelta]:
        return [StreamDelta(content=c) for c in chunks]

    @staticmethod
    def tools(*calls: ToolCall, content: str = "") -> list[StreamDelta]:
        deltas: list[StreamDelta] = [StreamDelta(content=content)] if content else []
        for i, call in enumerate(calls):
            deltas.append(StreamDelta(tool_calls=[ToolCallFragment(index=i, id=call.id, name=call.name)]))
            deltas.append(StreamDelta(tool_calls=[ToolCallFragment(index=i, arguments=call.arguments)]))
        return deltas


@pytest.fixture
def turns() -> Turns:
    return Turns()


@pytest.fixture
def scripted_provider() -> ScriptedProvider:
    """An empty provider script; tests add turns with ``script``."""
    return ScriptedProvider([])


# ----------------------------------------------------------------------
# Sample tools
# ----------------------------------------------------------------------


class LookupParams(BaseModel):
    query: str = ""


class GenerateParams(BaseModel):
    prompt: str = Field(min_length=1)
    count: int = Field(default=1, ge=1, le=4)


class DeleteParams(BaseModel):
    item_id: str


def _check_generate(params: GenerateParams) -> ValidationResult:
    if "forbidden" in params.prompt:
        return ValidationResult.failed("prompt contains a forbidden word")
    if params.count > 2:
        return ValidationResult.ok(["generating more than two images is slow"])
    return ValidationResult.ok()


def build_sample_registry(executed: List[tuple[str, Dict[str, Any]]]) -> ToolRegistry:
    async def lookup(params: LookupParams, ctx: ToolContext):
        executed.append(("lookup_items", params.model_dump()))
        return {"items": ["a", "b"], "count": 2}

    async def generate(params: GenerateParams, ctx: ToolContext):
        executed.append(("generate_image", params.model_dump()))
        return {"message": f"Generated {params.count} image(s)", "job_id": "job-1"}

    async def delete(params: DeleteParams, ctx: ToolContext):
        executed.append(("delete_item", params.model_dump()))
        return {"deleted": 1}

    async def explode(params: LookupParams, ctx: ToolContext):
        executed.append(("explode", params.model_dump()))
        raise RuntimeError("boom")

    return ToolRegistry(
        [
            ToolDefinition(
                name="lookup_items",
                display_name="Look up items",
                description="Read items.",
                category=ToolCategory.read,
                parameters=LookupParams,
                handler=lookup,
            ),
            ToolDefinition(
                name="generate_image",
                display_name="Generate image",
                description="Generate images.",
                category=ToolCategory.generation,
                parameters=GenerateParams,
                handler=generate,
                needs_confirmation=True,
                check=_check_generate,
            ),
            ToolDefinition(
                name="delete_item",
                display_name="Delete item",
                description="Delete an item.",
                category=ToolCategory.deletion,
                parameters=DeleteParams,
                handler=delete,
                needs_confirmation=True,
            ),
            ToolDefinition(
                name="explode",
                display_name="Explode",
                description="Always fails.",
                category=ToolCategory.read,
                parameters=LookupParams,
                handler=explode,
            ),
        ]
    )


# ----------------------------------------------------------------------
# Engine harness
# ----------------------------------------------------------------------


@dataclass
class EngineHarness:
    engine: AgentEngine
    provider: ScriptedProvider
    conversations: Any
    messages: Any
    registry: ToolRegistry
    balances: StaticBalanceProvider
    executed: List[tuple[str, Dict[str, Any]]] = field(default_factory=list)

    async def new_conversation(self, *, user_id: str = "user-1", **kwargs: Any) -> Conversation:
        conversation = Conversation(user_id=user_id, **kwargs)
        await self.conversations.create(conversation)
        return conversation

    async def stored(self, conversation_id: str) -> Conversation:
        c = await self.conversations.get(conversation_id)
        assert c is not None
        return c

    async def log(self, conversation_id: str) -> list[Message]:
        return await self.messages.list(conversation_id)

    @staticmethod
    async def collect(events: AsyncIterator[EngineEvent]) -> list[EngineEvent]:
        return [e async for e in events]


@pytest.fixture
def make_harness() -> Callable[..., EngineHarness]:
    def _make(
        turns: Sequence[Sequence[StreamDelta]],
        *,
        repeat_last: bool = False,
        config: Optional[EngineConfig] = None,
        prices: Optional[Dict[str, float]] = None,
        balance: float = 0.0,
        conversations: Any = None,
        messages: Any = None,
        system_prompt: str = "",
    ) -> EngineHarness:
        executed: List[tuple[str, Dict[str, Any]]] = []
        registry = build_sample_registry(executed)
        provider = ScriptedProvider(turns, repeat_last=repeat_last)
        balances = StaticBalanceProvider(default=balance)
        conversations = conversations if conversations is not None else InMemoryConversations()
        messages = messages if messages is not None else InMemoryMessages()
        deps = EngineDeps(
            conversations=conversations,
            messages=messages,
            registry=registry,
            validator=SchemaParameterValidator(registry),
            executor=RegistryToolExecutor(registry),
            credits=PricedCreditGate(prices or {}, balances),
            provider=provider,
            prompt_builder=StaticPromptBuilder(system_prompt) if system_prompt else None,
        )
        engine = AgentEngine(deps=deps, config=config or EngineConfig(stream_throttle_ms=0))
        return EngineHarness(
            engine=engine,
            provider=provider,
            conversations=conversations,
            messages=messages,
            registry=registry,
            balances=balances,
            executed=executed,
        )

    return _make
