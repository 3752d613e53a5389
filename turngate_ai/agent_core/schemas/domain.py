from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import Field

from .base import BaseSchema

USER_REJECTED = "USER_REJECTED"
USER_SKIPPED = "USER_SKIPPED"
BATCH_VALIDATION_FAILED = "BATCH_VALIDATION_FAILED"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ConversationStatus(str, Enum):
    active = "active"
    awaiting_approval = "awaiting_approval"
    completed = "completed"


class MessageRole(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"
    tool = "tool"


class ToolCategory(str, Enum):
    read = "read"
    generation = "generation"
    modification = "modification"
    deletion = "deletion"


class Conversation(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: str
    title: Optional[str] = None

    status: ConversationStatus = ConversationStatus.active
    context: Dict[str, Any] = Field(default_factory=dict)
    version: int = 0

    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    last_activity_at: datetime = Field(default_factory=_utc_now)


class ToolCall(BaseSchema):
    """A tool invocation declared by an assistant message.

    ``arguments`` is the raw JSON object text as produced by the model (or as
    patched by a resume with modified parameters).
    """

    id: str
    name: str
    arguments: str = "{}"

    def parsed_arguments(self) -> Dict[str, Any]:
        try:
            value = json.loads(self.arguments or "{}")
        except json.JSONDecodeError:
            return {}
        return value if isinstance(value, dict) else {}


class Message(BaseSchema):
    id: str = Field(default_factory=lambda: str(uuid4()))
    conversation_id: str
    role: MessageRole
    content: str = ""

    reasoning_content: Optional[str] = None
    tool_calls: List[ToolCall] = Field(default_factory=list)
    tool_call_id: Optional[str] = None

    position: Optional[int] = None
    created_at: datetime = Field(default_factory=_utc_now)

    def is_empty_placeholder(self) -> bool:
        return self.role == MessageRole.assistant and not self.content and not self.tool_calls

    def to_provider_dict(self) -> Dict[str, Any]:
        """Render the message in the chat-completions wire shape."""
        out: Dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.role == MessageRole.assistant and self.tool_calls:
            out["tool_calls"] = [
                {"id": c.id, "type": "function", "function": {"name": c.name, "arguments": c.arguments}}
                for c in self.tool_calls
            ]
            if not self.content:
                out["content"] = None
        if self.role == MessageRole.tool:
            out["tool_call_id"] = self.tool_call_id
        return out


class ToolResult(BaseSchema):
    success: bool
    data: Any = None
    error: Optional[str] = None
    job_id: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> ToolResult:
        return cls(success=False, error=error)

    def to_content(self) -> str:
        """Serialize the result as the ``content`` of a tool message."""
        payload: Dict[str, Any] = {"success": self.success}
        if self.success:
            payload["data"] = self.data
        else:
            payload["error"] = self.error
        if self.job_id is not None:
            payload["job_id"] = self.job_id
        if self.error == USER_REJECTED:
            payload["userRejected"] = True
        elif self.error == USER_SKIPPED:
            payload["userSkipped"] = True
        return json.dumps(payload, ensure_ascii=False, default=str)


class CreditLineItem(BaseSchema):
    tool_call_id: str
    tool_name: str
    credits: float
    details: Optional[str] = None


class CreditCost(BaseSchema):
    total: float = 0.0
    breakdown: List[CreditLineItem] = Field(default_factory=list)


class BalanceCheck(BaseSchema):
    has_enough: bool
    current_balance: float


class PendingApprovalBatch(BaseSchema):
    """Presentation view of the tool calls currently waiting for a human decision."""

    assistant_message_id: str
    assistant_content: str = ""
    pending: List[ToolCall]
    display_name: str
    category: ToolCategory
