from __future__ import annotations

"""Conversation state persistence glue.

``ConversationStateManager`` is the only place the engine touches the
repositories. Loading a conversation:

1. reads the conversation record and its stored log,
2. drops empty assistant placeholders left behind by abandoned streams,
3. repairs tool-result ordering,
4. self-heals a stale ``awaiting_approval`` status when nothing is pending,
5. prepends the system messages rebuilt by the ``PromptBuilder``.
"""

import logging
from typing import Any, Optional

from ..errors import ConversationNotFoundError
from ..repos import ConversationRepository, MessageRepository
from ..schemas.domain import ConversationStatus, Message, MessageRole, ToolCall, ToolResult
from ..tools.registry import ToolRegistry
from .approval import is_awaiting_approval
from .models import ConversationState, PromptBuilder
from .ordering import ensure_tool_call_order

logger = logging.getLogger(__name__)


class ConversationStateManager:
    def __init__(
        self,
        *,
        conversations: ConversationRepository,
        messages: MessageRepository,
        registry: ToolRegistry,
        prompt_builder: Optional[PromptBuilder] = None,
    ) -> None:
        self._conversations = conversations
        self._messages = messages
        self._registry = registry
        self._prompt_builder = prompt_builder

    async def load(self, conversation_id: str) -> ConversationState:
        """
        Load a conversation and its provider-ready log.

        Args:
            conversation_id: The conversation to load.

        Returns:
            The conversation record and the ordered log, system messages first.

        Raises:
            ConversationNotFoundError: If the conversation does not exist.
        """
        conversation = await self._conversations.get(conversation_id)
        if conversation is None:
            raise ConversationNotFoundError(conversation_id)

        stored = await self._messages.list(conversation_id)
        log = ensure_tool_call_order([m for m in stored if not m.is_empty_placeholder()])

        if conversation.status == ConversationStatus.awaiting_approval and not is_awaiting_approval(
            log, self._registry
        ):
            logger.warning(
                "Conversation %s is marked awaiting_approval but nothing is pending; resetting to active",
                conversation_id,
            )
            await self._conversations.update_status(conversation_id, status=ConversationStatus.active)
            conversation = conversation.model_copy(update={"status": ConversationStatus.active})

        system = self._prompt_builder.build_system_messages(conversation) if self._prompt_builder else []
        return ConversationState(conversation=conversation, messages=[*system, *log])

    async def save_user_message(self, conversation_id: str, content: str) -> Message:
        return await self._messages.append(
            Message(conversation_id=conversation_id, role=MessageRole.user, content=content)
        )

    async def create_assistant_placeholder(self, conversation_id: str) -> Message:
        return await self._messages.append(Message(conversation_id=conversation_id, role=MessageRole.assistant))

    async def save_assistant(self, message: Message) -> None:
        await self._messages.update_assistant(
            message.id,
            content=message.content,
            reasoning_content=message.reasoning_content,
            tool_calls=list(message.tool_calls),
        )

    async def save_tool_result(self, conversation_id: str, tool_call_id: str, result: ToolResult) -> Message:
        return await self._messages.append(
            Message(
                conversation_id=conversation_id,
                role=MessageRole.tool,
                content=result.to_content(),
                tool_call_id=tool_call_id,
            )
        )

    async def patch_tool_call(self, assistant_message_id: str, call: ToolCall) -> None:
        patched = await self._messages.update_tool_call_arguments(
            assistant_message_id, call.id, arguments=call.arguments
        )
        if not patched:
            logger.warning("Tool call %s not found on message %s; arguments not patched", call.id, assistant_message_id)

    async def set_status(self, conversation_id: str, status: ConversationStatus) -> None:
        await self._conversations.update_status(conversation_id, status=status)

    async def save_context(self, conversation_id: str, context: dict[str, Any]) -> None:
        await self._conversations.update_context(conversation_id, context=context)
