"""
API Schemas.

Pydantic models for request bodies and responses of the conversation API.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from turngate_ai.agent_core.schemas.domain import Message, PendingApprovalBatch


class ConversationCreate(BaseModel):
    """Schema for creating a new conversation."""

    user_id: str = Field(
        ...,
        description="Owner of the conversation; used for credit checks.",
        examples=["user-123"],
    )
    title: Optional[str] = Field(default=None, description="Optional display title.", examples=["Planning notes"])
    context: Dict[str, Any] = Field(
        default_factory=dict,
        description="Opaque context used to rebuild the system prompt.",
        examples=[{"project": "demo"}],
    )


class ChatRequest(BaseModel):
    """Schema for starting a new turn."""

    message: str = Field(..., min_length=1, description="The user's message.", examples=["Write down my ideas."])
    context: Optional[Dict[str, Any]] = Field(
        default=None, description="Replacement prompt context for this and later turns."
    )


class ResumeRequest(BaseModel):
    """
    Schema for answering a pending approval.

    ``modified_params`` maps a tool call id to replacement arguments;
    ``disabled_ids`` lists tool calls to skip while approving the rest.
    """

    approved: bool = Field(..., description="Whether the pending tool calls are approved.")
    modified_params: Optional[Dict[str, Dict[str, Any]]] = Field(
        default=None,
        description="Replacement arguments keyed by tool call id.",
        examples=[{"call_abc": {"title": "Shopping list"}}],
    )
    feedback: Optional[str] = Field(
        default=None, description="Message for the model when rejecting; without it the turn ends."
    )
    disabled_ids: Optional[List[str]] = Field(default=None, description="Tool call ids to skip.")

    model_config = ConfigDict(
        json_schema_extra={"example": {"approved": True, "disabled_ids": [], "modified_params": {}}}
    )


class MessageList(BaseModel):
    conversation_id: str
    messages: List[Message]


class PendingApprovalResponse(BaseModel):
    conversation_id: str
    pending: Optional[PendingApprovalBatch] = Field(
        default=None, description="The pending batch, or null when nothing awaits a decision."
    )
