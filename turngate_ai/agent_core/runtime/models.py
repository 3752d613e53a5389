from __future__ import annotations

"""Runtime dependency bundle, configuration and LangGraph state types.

The execution engine is dependency-injected:

- ``EngineDeps`` collects the repositories and collaborators the engine talks to.
- ``EngineConfig`` carries the tunables (iteration cap, throttle, timeouts).
- ``_LoopState`` is the mutable state passed between LangGraph nodes while one
  invocation runs. It lives only for that invocation; everything that must
  survive a restart is in the message log.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, NotRequired, Optional, Protocol, Required, TypedDict

from ..credits.gate import CreditGate
from ..providers.base import ProviderAdapter, ProviderOptions
from ..repos import ConversationRepository, MessageRepository
from ..schemas.domain import Conversation, Message, MessageRole
from ..tools.executor import ToolExecutor
from ..tools.registry import ToolRegistry
from ..tools.validation import ParameterValidator


class PromptBuilder(Protocol):
    def build_system_messages(self, conversation: Conversation) -> list[Message]:
        """
        Rebuild the system messages of a conversation.

        Args:
            conversation: The conversation, including its opaque ``context``.

        Returns:
            System messages to prepend to the stored log. They are never persisted.
        """
        ...


class StaticPromptBuilder:
    """Single fixed system prompt, optionally followed by the conversation context."""

    def __init__(self, system_prompt: str, *, include_context: bool = True) -> None:
        self._system_prompt = system_prompt
        self._include_context = include_context

    def build_system_messages(self, conversation: Conversation) -> list[Message]:
        if not self._system_prompt:
            return []
        content = self._system_prompt
        if self._include_context and conversation.context:
            lines = [f"- {k}: {v}" for k, v in sorted(conversation.context.items())]
            content = content + "\n\nContext:\n" + "\n".join(lines)
        return [Message(conversation_id=conversation.id, role=MessageRole.system, content=content)]


@dataclass(frozen=True)
class EngineDeps:
    """Dependency bundle for ``AgentEngine``.

    Built by application wiring code (see ``turngate_ai.server.services``) or by
    tests with in-memory fakes.
    """

    conversations: ConversationRepository
    messages: MessageRepository
    registry: ToolRegistry
    validator: ParameterValidator
    executor: ToolExecutor
    credits: CreditGate
    provider: ProviderAdapter

    prompt_builder: Optional[PromptBuilder] = None


@dataclass(frozen=True)
class EngineConfig:
    max_iterations: int = 20
    stream_throttle_ms: int = 50
    iteration_timeout_seconds: Optional[float] = 120.0
    temperature: float = 0.7
    max_tokens: int = 4096

    def provider_options(self) -> ProviderOptions:
        return ProviderOptions(temperature=self.temperature, max_tokens=self.max_tokens)


@dataclass(frozen=True)
class ConversationState:
    """A loaded conversation: the record plus the ordered, provider-ready log."""

    conversation: Conversation
    messages: List[Message]


class LoopPhase(str, Enum):
    dispatch = "dispatch"
    execute = "execute"
    pause = "pause"
    next_turn = "next_turn"
    finish = "finish"
    exhausted = "exhausted"


class _LoopState(TypedDict):
    """Mutable LangGraph state for one engine invocation.

    Required keys:

    - ``conversation_id``: conversation being driven.
    - ``messages``: the in-memory log (system messages first), kept in provider order.
    - ``assistant_message_id``: placeholder that the next ``think`` fills in.
    - ``iteration``: provider round-trips performed in this invocation.

    Optional keys:

    - ``draft``: assistant message produced by the last ``think``.
    - ``phase``: routing decision of the last node.
    """

    conversation_id: Required[str]
    messages: Required[List[Message]]
    assistant_message_id: Required[str]
    iteration: Required[int]
    draft: NotRequired[Optional[Message]]
    phase: NotRequired[LoopPhase]
