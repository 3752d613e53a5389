"""Execution runtime: the engine loop and the pure helpers it is built from."""

from .approval import (
    describe_pending_batch,
    find_pending_approvals,
    find_unresolved_tool_calls,
    is_awaiting_approval,
    last_assistant_message,
)
from .engine import AgentEngine, insert_tool_result
from .formatter import format_tool_result
from .locks import ConversationLocks
from .models import ConversationState, EngineConfig, EngineDeps, PromptBuilder, StaticPromptBuilder
from .ordering import ensure_tool_call_order
from .state import ConversationStateManager
from .streaming import DeltaThrottle, ToolCallAccumulator

__all__ = [
    "AgentEngine",
    "ConversationLocks",
    "ConversationState",
    "ConversationStateManager",
    "DeltaThrottle",
    "EngineConfig",
    "EngineDeps",
    "PromptBuilder",
    "StaticPromptBuilder",
    "ToolCallAccumulator",
    "describe_pending_batch",
    "ensure_tool_call_order",
    "find_pending_approvals",
    "find_unresolved_tool_calls",
    "format_tool_result",
    "insert_tool_result",
    "is_awaiting_approval",
    "last_assistant_message",
]
