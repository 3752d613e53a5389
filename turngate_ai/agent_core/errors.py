from __future__ import annotations

"""Engine error hierarchy.

Every error raised by the execution engine derives from ``AgentEngineError``
and carries a stable machine-readable ``code``. The engine converts these into
``error`` events at its outer boundary; the HTTP layer forwards the code to
clients unchanged.

Recoverable failures (parameter validation, a tool handler blowing up) never
escape as exceptions: they become failed tool results that the model sees on
the next iteration.
"""

from typing import Optional


class AgentEngineError(Exception):
    """Base class for engine errors."""

    code: str = "internal_error"

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class UnknownToolError(AgentEngineError):
    """The model asked for a tool the registry does not know."""

    code = "unknown_tool"

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(AgentEngineError):
    """A tool handler failed. Converted to a failed tool result by the executor."""

    code = "tool_execution_failed"

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class InsufficientCreditError(AgentEngineError):
    """The owner's balance does not cover an approved batch."""

    code = "insufficient_credit"

    def __init__(self, required: float, current_balance: float) -> None:
        super().__init__(f"Insufficient credits: need {required:g}, current balance {current_balance:g}")
        self.required = required
        self.current_balance = current_balance


class MaxIterationsExceeded(AgentEngineError):
    code = "max_iterations"

    def __init__(self, max_iterations: int) -> None:
        super().__init__(f"Reached maximum iterations ({max_iterations})")
        self.max_iterations = max_iterations


class ProviderTimeoutError(AgentEngineError):
    code = "provider_timeout"

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"Model provider did not finish streaming within {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class NothingToResumeError(AgentEngineError):
    code = "nothing_to_resume"

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"No pending tool calls to resume in conversation {conversation_id}")
        self.conversation_id = conversation_id


class ConversationNotFoundError(AgentEngineError):
    code = "conversation_not_found"

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class ConversationBusyError(AgentEngineError):
    """Another driver currently owns the conversation, or this driver is stale."""

    code = "conversation_busy"

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"Conversation {conversation_id} is being processed by another request")
        self.conversation_id = conversation_id
