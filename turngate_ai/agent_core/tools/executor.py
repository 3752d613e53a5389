from __future__ import annotations

"""Tool execution.

``RegistryToolExecutor`` resolves a tool call through the ``ToolRegistry``,
validates its arguments into the tool's parameters model and awaits the
handler. Every failure, including an exception escaping the handler, is
returned as a failed ``ToolResult``; the executor never raises into the
engine loop.
"""

import json
import logging
from typing import Protocol

from pydantic import ValidationError

from ..errors import ToolExecutionError
from ..schemas.domain import ToolCall, ToolResult
from .base import ToolContext, coerce_result
from .registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolExecutor(Protocol):
    async def execute(self, call: ToolCall, conversation_id: str) -> ToolResult:
        """
        Execute one tool call.

        Args:
            call: The tool call, with final (possibly user-edited) arguments.
            conversation_id: The conversation the call belongs to.

        Returns:
            The tool result. Implementations report failures as ``success=False``.
        """
        ...


class RegistryToolExecutor:
    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry

    async def execute(self, call: ToolCall, conversation_id: str) -> ToolResult:
        tool = self._registry.lookup(call.name)
        if tool is None:
            return ToolResult.failure(f"Unknown tool: {call.name}")

        try:
            params = tool.parameters.model_validate(json.loads(call.arguments or "{}"))
        except (json.JSONDecodeError, ValidationError) as exc:
            return ToolResult.failure(f"Invalid arguments for {call.name}: {exc}")

        ctx = ToolContext(conversation_id=conversation_id, tool_call_id=call.id)
        try:
            return coerce_result(await tool.handler(params, ctx))
        except ToolExecutionError as exc:
            logger.warning("Tool %s failed: %s", call.name, exc.message)
            return ToolResult.failure(exc.message)
        except Exception as exc:
            logger.exception("Tool %s raised", call.name)
            return ToolResult.failure(str(exc) or exc.__class__.__name__)
