"""Schemas and DTOs for the agent core."""

from .domain import (
    BATCH_VALIDATION_FAILED,
    USER_REJECTED,
    USER_SKIPPED,
    BalanceCheck,
    Conversation,
    ConversationStatus,
    CreditCost,
    CreditLineItem,
    Message,
    MessageRole,
    PendingApprovalBatch,
    ToolCall,
    ToolCategory,
    ToolResult,
)
from .events import (
    AssistantMessageIdEvent,
    CompleteEvent,
    CompletionOutcome,
    ContentDeltaEvent,
    EngineEvent,
    ErrorEvent,
    InterruptEvent,
    ReasoningDeltaEvent,
    ToolCallEndEvent,
    ToolCallStartEvent,
    UserMessageIdEvent,
    engine_event_adapter,
)

__all__ = [
    "BATCH_VALIDATION_FAILED",
    "USER_REJECTED",
    "USER_SKIPPED",
    "BalanceCheck",
    "Conversation",
    "ConversationStatus",
    "CreditCost",
    "CreditLineItem",
    "Message",
    "MessageRole",
    "PendingApprovalBatch",
    "ToolCall",
    "ToolCategory",
    "ToolResult",
    "AssistantMessageIdEvent",
    "CompleteEvent",
    "CompletionOutcome",
    "ContentDeltaEvent",
    "EngineEvent",
    "ErrorEvent",
    "InterruptEvent",
    "ReasoningDeltaEvent",
    "ToolCallEndEvent",
    "ToolCallStartEvent",
    "UserMessageIdEvent",
    "engine_event_adapter",
]
