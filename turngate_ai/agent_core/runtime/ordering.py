"""Tool-result ordering for chat-completion providers.

Providers reject a history in which a tool message is not directly preceded
by the assistant message that declared its call (after that message's other
results). Interrupted runs, restarts and late writes can leave results out of
place in the stored log; ``ensure_tool_call_order`` repairs the sequence before
it is sent anywhere.
"""

from typing import Sequence

from ..schemas.domain import Message, MessageRole


def ensure_tool_call_order(messages: Sequence[Message]) -> list[Message]:
    """Move every tool result directly behind the assistant message that declared it.

    Single forward pass. For each assistant message with tool calls, strictly
    later tool messages answering one of its still-unmatched call ids are
    spliced in right after it, keeping their relative order. Every other
    message keeps its relative order. Applying the function twice yields the
    same list.
    """
    result: list[Message] = []
    moved: set[int] = set()

    for i, msg in enumerate(messages):
        if i in moved:
            continue
        result.append(msg)

        if msg.role != MessageRole.assistant or not msg.tool_calls:
            continue
        unmatched = {c.id for c in msg.tool_calls}
        for j in range(i + 1, len(messages)):
            if not unmatched:
                break
            later = messages[j]
            if j in moved or later.role != MessageRole.tool or later.tool_call_id not in unmatched:
                continue
            result.append(later)
            moved.add(j)
            unmatched.discard(later.tool_call_id)

    return result
