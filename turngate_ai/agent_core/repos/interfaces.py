from __future__ import annotations

"""Repository interface contracts.

The execution engine depends on these Protocols instead of a concrete storage
engine.

Contract guidelines
-------------------

- All methods are async.
- Implementations must not leak sessions or transactions to the caller; a
  write is durable when the method returns.
- The message log is append-only. The single exception is
  ``MessageRepository.update_tool_call_arguments``, used once when a human
  edits the parameters of a pending tool call before approving it, and
  ``update_assistant``, which fills in the placeholder created at the start of
  an iteration.
- Updates against unknown ids are no-ops.
"""

from typing import Any, Optional, Protocol

from ..schemas.domain import Conversation, ConversationStatus, Message, ToolCall


class ConversationRepository(Protocol):
    """Persist and query conversations."""

    async def create(self, conversation: Conversation) -> None:
        """
        Create a new conversation record.

        Args:
            conversation: The conversation to persist.
        """
        ...

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        """
        Retrieve a conversation by its ID.

        Args:
            conversation_id: The conversation identifier.

        Returns:
            The Conversation if found, else None.
        """
        ...

    async def list(self, user_id: Optional[str] = None, limit: int = 100, offset: int = 0) -> list[Conversation]:
        """
        List conversations, most recently active first.

        Args:
            user_id: Optional owner to filter by.
            limit: Max number of records to return.
            offset: Pagination offset.

        Returns:
            A list of Conversation objects.
        """
        ...

    async def update_status(self, conversation_id: str, *, status: ConversationStatus) -> None:
        """
        Update the lifecycle status of a conversation.

        Args:
            conversation_id: The conversation to update.
            status: The new status.
        """
        ...

    async def update_context(self, conversation_id: str, *, context: dict[str, Any]) -> None:
        """
        Replace the opaque prompt context stored with the conversation.

        Args:
            conversation_id: The conversation to update.
            context: The new context mapping.
        """
        ...

    async def claim(self, conversation_id: str, *, expected_version: int) -> bool:
        """
        Take ownership of a conversation for one engine invocation.

        The version is bumped only when it still equals ``expected_version``.

        Args:
            conversation_id: The conversation to claim.
            expected_version: The version the caller observed when loading.

        Returns:
            True if the claim succeeded, False if another driver got there first.
        """
        ...


class MessageRepository(Protocol):
    """Append-only message log of a conversation."""

    async def append(self, message: Message) -> Message:
        """
        Append a message to the end of its conversation's log.

        Args:
            message: The message to append. Its ``position`` is assigned by the store.

        Returns:
            The stored message with ``position`` set.
        """
        ...

    async def update_assistant(
        self,
        message_id: str,
        *,
        content: str,
        reasoning_content: Optional[str],
        tool_calls: list[ToolCall],
    ) -> None:
        """
        Fill in an assistant message once its stream has finished.

        Args:
            message_id: The assistant placeholder to update.
            content: Final assistant text.
            reasoning_content: Final reasoning text, if any.
            tool_calls: The parsed tool calls, in declared order.
        """
        ...

    async def update_tool_call_arguments(self, message_id: str, tool_call_id: str, *, arguments: str) -> bool:
        """
        Patch the recorded arguments of one tool call of an assistant message.

        Args:
            message_id: The assistant message declaring the call.
            tool_call_id: The tool call to patch.
            arguments: The replacement JSON arguments text.

        Returns:
            True if the call was found and patched.
        """
        ...

    async def list(self, conversation_id: str) -> list[Message]:
        """
        Return the full log of a conversation in arrival order.

        Args:
            conversation_id: The conversation identifier.

        Returns:
            Messages ordered by ``position``.
        """
        ...
