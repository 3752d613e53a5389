"""
Conversation API Endpoints.

Create and inspect conversations, and drive their turns. ``/chat`` and
``/resume`` answer with a Server-Sent Events stream: one SSE message per engine
event, the SSE ``event`` field carrying the event ``type`` and ``data`` the
JSON-encoded event.
"""

from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from sse_starlette.sse import EventSourceResponse

from turngate_ai.agent_core.schemas.domain import Conversation
from turngate_ai.agent_core.schemas.events import EngineEvent, ErrorEvent
from turngate_ai.core.logging_config import get_logger
from turngate_ai.server.schemas import (
    ChatRequest,
    ConversationCreate,
    MessageList,
    PendingApprovalResponse,
    ResumeRequest,
)
from turngate_ai.server.services.deps import OrchestratorDep

logger = get_logger(__name__)
router = APIRouter()


def _to_sse(event: EngineEvent) -> dict:
    return {"event": event.type, "data": event.model_dump_json(exclude_none=True)}


async def _event_stream(request: Request, conversation_id: str, events: AsyncIterator[EngineEvent]):
    try:
        async for event in events:
            yield _to_sse(event)
            if await request.is_disconnected():
                logger.info(f"Client disconnected from conversation {conversation_id}")
                break
    except Exception as e:
        logger.error(f"Error in event stream for conversation {conversation_id}: {e}", exc_info=True)
        yield _to_sse(ErrorEvent(message=str(e) or "stream failed", code="internal_error"))
    finally:
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()


async def _require_conversation(orchestrator, conversation_id: str) -> Conversation:
    conversation = await orchestrator.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


@router.post(
    "/",
    response_model=Conversation,
    status_code=201,
    summary="Create Conversation",
    description="Create an empty conversation owned by a user.",
)
async def create_conversation(body: ConversationCreate, orchestrator: OrchestratorDep):
    return await orchestrator.create_conversation(user_id=body.user_id, title=body.title, context=body.context)


@router.get(
    "/",
    response_model=List[Conversation],
    summary="List Conversations",
    description="List conversations, most recently active first, optionally filtered by owner.",
)
async def list_conversations(
    orchestrator: OrchestratorDep,
    user_id: Optional[str] = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    return await orchestrator.list_conversations(user_id=user_id, limit=limit, offset=offset)


@router.get(
    "/{conversation_id}",
    response_model=Conversation,
    summary="Get Conversation",
    description="Retrieve a conversation including its status.",
)
async def get_conversation(conversation_id: str, orchestrator: OrchestratorDep):
    return await _require_conversation(orchestrator, conversation_id)


@router.get(
    "/{conversation_id}/messages",
    response_model=MessageList,
    summary="Get Messages",
    description="Return the message log in provider order (tool results directly after their assistant message).",
)
async def get_messages(conversation_id: str, orchestrator: OrchestratorDep):
    messages = await orchestrator.get_messages(conversation_id)
    return MessageList(conversation_id=conversation_id, messages=messages)


@router.get(
    "/{conversation_id}/pending",
    response_model=PendingApprovalResponse,
    summary="Get Pending Approvals",
    description="Derive the tool calls currently waiting for a human decision from the message log.",
)
async def get_pending(conversation_id: str, orchestrator: OrchestratorDep):
    pending = await orchestrator.get_pending(conversation_id)
    return PendingApprovalResponse(conversation_id=conversation_id, pending=pending)


@router.post(
    "/{conversation_id}/chat",
    summary="Send Message",
    description="Start a new turn with a user message and stream engine events as SSE.",
)
async def chat(conversation_id: str, body: ChatRequest, request: Request, orchestrator: OrchestratorDep):
    await _require_conversation(orchestrator, conversation_id)
    events = orchestrator.chat(conversation_id, body.message, context=body.context)
    return EventSourceResponse(_event_stream(request, conversation_id, events))


@router.post(
    "/{conversation_id}/resume",
    summary="Resume Conversation",
    description="Approve or reject the pending tool calls and stream the continuation as SSE.",
)
async def resume(conversation_id: str, body: ResumeRequest, request: Request, orchestrator: OrchestratorDep):
    await _require_conversation(orchestrator, conversation_id)
    events = orchestrator.resume(
        conversation_id,
        approved=body.approved,
        modified_params=body.modified_params,
        feedback=body.feedback,
        disabled_ids=body.disabled_ids,
    )
    return EventSourceResponse(_event_stream(request, conversation_id, events))
