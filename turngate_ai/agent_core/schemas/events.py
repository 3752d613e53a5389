from __future__ import annotations

"""Events streamed to the caller while a turn executes.

Events are the only output channel of the engine. Their order on the stream is
the order in which the corresponding state changes were persisted. Every event
is a pydantic model with a ``type`` discriminator so transports can serialize
them with ``model_dump_json``.
"""

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from .base import BaseSchema
from .domain import PendingApprovalBatch


class CompletionOutcome(str, Enum):
    done = "done"
    pending_confirmation = "pending_confirmation"
    rejected = "rejected"


class UserMessageIdEvent(BaseSchema):
    type: Literal["user_message_id"] = "user_message_id"
    message_id: str


class AssistantMessageIdEvent(BaseSchema):
    type: Literal["assistant_message_id"] = "assistant_message_id"
    message_id: str


class ContentDeltaEvent(BaseSchema):
    type: Literal["content_delta"] = "content_delta"
    delta: str


class ReasoningDeltaEvent(BaseSchema):
    type: Literal["reasoning_delta"] = "reasoning_delta"
    delta: str


class ToolCallStartEvent(BaseSchema):
    type: Literal["tool_call_start"] = "tool_call_start"
    id: str
    name: str
    display_name: str
    arguments: str


class ToolCallEndEvent(BaseSchema):
    type: Literal["tool_call_end"] = "tool_call_end"
    id: str
    name: str
    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None


class InterruptEvent(BaseSchema):
    type: Literal["interrupt"] = "interrupt"
    action: Literal["approval_required"] = "approval_required"
    pending: PendingApprovalBatch


class CompleteEvent(BaseSchema):
    type: Literal["complete"] = "complete"
    outcome: CompletionOutcome


class ErrorEvent(BaseSchema):
    type: Literal["error"] = "error"
    message: str
    code: str = "internal_error"
    required: Optional[float] = None
    current_balance: Optional[float] = None


EngineEvent = Annotated[
    Union[
        UserMessageIdEvent,
        AssistantMessageIdEvent,
        ContentDeltaEvent,
        ReasoningDeltaEvent,
        ToolCallStartEvent,
        ToolCallEndEvent,
        InterruptEvent,
        CompleteEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

engine_event_adapter: TypeAdapter[EngineEvent] = TypeAdapter(EngineEvent)
