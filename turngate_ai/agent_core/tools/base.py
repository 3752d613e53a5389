from __future__ import annotations

"""Tool definition protocol and data models.

A tool is the unit of work the model can request through a tool call. Each
tool is described by a ``ToolDefinition``:

- ``parameters`` is a pydantic model; its JSON schema is what the provider
  sees and it is what arguments are validated against.
- ``needs_confirmation`` marks the tool as gated: the engine suspends for a
  human decision before running it.
- ``handler`` performs the work. It receives the validated parameters model
  and a ``ToolContext``.
- ``summarize`` optionally turns the tool's ``data`` into the short text shown
  in ``tool_call_end`` events.

Handlers must not make approval decisions themselves; gating is enforced by
the engine before a handler is ever reached.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Protocol

from pydantic import BaseModel

from ..schemas.domain import ToolCategory, ToolResult


@dataclass(frozen=True)
class ToolContext:
    """Execution context passed to tool handlers."""

    conversation_id: str
    tool_call_id: str


@dataclass
class ValidationResult:
    """Outcome of validating one tool call's arguments.

    Warnings never block execution; they are logged by the engine.
    """

    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def ok(cls, warnings: Optional[List[str]] = None) -> ValidationResult:
        return cls(valid=True, warnings=list(warnings or []))

    @classmethod
    def failed(cls, *errors: str) -> ValidationResult:
        return cls(valid=False, errors=list(errors))


class ToolHandler(Protocol):
    """Callable implementing a tool.

    A handler may return a ``ToolResult`` or any JSON-serializable value, which
    is wrapped into a successful result.
    """

    async def __call__(self, params: Any, ctx: ToolContext) -> Any: ...


ToolSummarizer = Callable[[Any], Optional[str]]
ToolChecker = Callable[[Any], ValidationResult]


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    display_name: str
    description: str
    category: ToolCategory
    parameters: type[BaseModel]
    handler: ToolHandler
    needs_confirmation: bool = False
    summarize: Optional[ToolSummarizer] = None
    check: Optional[ToolChecker] = None

    def function_schema(self) -> dict[str, Any]:
        """Render the chat-completions ``tools`` entry for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters.model_json_schema(),
            },
        }


def coerce_result(value: Any) -> ToolResult:
    """Normalize a handler's return value into a ``ToolResult``."""
    if isinstance(value, ToolResult):
        return value
    return ToolResult(success=True, data=value)
