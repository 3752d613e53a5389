"""Pending-approval resolution over the message log.

Pending approvals are never stored. They are recomputed from the log on every
read: the last assistant message's tool calls that have no tool message yet
and whose tool is gated in the registry. Everything in this module is a pure
function of its arguments.
"""

from typing import Optional, Sequence

from ..schemas.domain import Message, MessageRole, PendingApprovalBatch, ToolCall, ToolCategory
from ..tools.registry import ToolRegistry


def last_assistant_message(messages: Sequence[Message]) -> Optional[Message]:
    for msg in reversed(messages):
        if msg.role == MessageRole.assistant:
            return msg
    return None


def _answered_ids(messages: Sequence[Message]) -> set[str]:
    return {m.tool_call_id for m in messages if m.role == MessageRole.tool and m.tool_call_id}


def find_unresolved_tool_calls(messages: Sequence[Message]) -> list[ToolCall]:
    """Tool calls of the last assistant message that have no tool result, in declared order."""
    last = last_assistant_message(messages)
    if last is None or not last.tool_calls:
        return []
    answered = _answered_ids(messages)
    return [c for c in last.tool_calls if c.id not in answered]


def find_pending_approvals(messages: Sequence[Message], registry: ToolRegistry) -> list[ToolCall]:
    """Unresolved tool calls of the last assistant message that require confirmation.

    An empty list means nothing is pending.
    """
    return [c for c in find_unresolved_tool_calls(messages) if registry.needs_confirmation(c.name)]


def is_awaiting_approval(messages: Sequence[Message], registry: ToolRegistry) -> bool:
    return bool(find_pending_approvals(messages, registry))


def describe_pending_batch(messages: Sequence[Message], registry: ToolRegistry) -> Optional[PendingApprovalBatch]:
    """Build the presentation view of the pending set, or None if nothing is pending.

    The display name and category are taken from the first pending call.
    """
    last = last_assistant_message(messages)
    pending = find_pending_approvals(messages, registry)
    if last is None or not pending:
        return None
    first = registry.lookup(pending[0].name)
    return PendingApprovalBatch(
        assistant_message_id=last.id,
        assistant_content=last.content,
        pending=pending,
        display_name=first.display_name if first else pending[0].name,
        category=first.category if first else ToolCategory.generation,
    )
