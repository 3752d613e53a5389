from __future__ import annotations

import pytest
from pydantic import BaseModel

from turngate_ai.agent_core.errors import ToolExecutionError
from turngate_ai.agent_core.schemas.domain import ToolCall, ToolCategory, ToolResult
from turngate_ai.agent_core.tools import RegistryToolExecutor, ToolContext, ToolDefinition, ToolRegistry


class EchoParams(BaseModel):
    text: str


seen: list[ToolContext] = []


async def _echo(params: EchoParams, ctx: ToolContext):
    seen.append(ctx)
    return {"echo": params.text}


async def _explicit(params: EchoParams, ctx: ToolContext):
    return ToolResult(success=True, data=params.text, job_id="job-9")


async def _domain_failure(params: EchoParams, ctx: ToolContext):
    raise ToolExecutionError("refuse", "not allowed right now")


async def _crash(params: EchoParams, ctx: ToolContext):
    raise KeyError("missing")


def _def(name: str, handler) -> ToolDefinition:
    return ToolDefinition(
        name=name,
        display_name=name,
        description=name,
        category=ToolCategory.read,
        parameters=EchoParams,
        handler=handler,
    )


@pytest.fixture
def executor() -> RegistryToolExecutor:
    seen.clear()
    reg = ToolRegistry(
        [_def("echo", _echo), _def("explicit", _explicit), _def("refuse", _domain_failure), _def("crash", _crash)]
    )
    return RegistryToolExecutor(reg)


@pytest.mark.asyncio
async def test_handler_value_is_wrapped_in_success(executor) -> None:
    result = await executor.execute(ToolCall(id="c1", name="echo", arguments='{"text": "hi"}'), "conv-1")

    assert result == ToolResult(success=True, data={"echo": "hi"})
    assert seen == [ToolContext(conversation_id="conv-1", tool_call_id="c1")]


@pytest.mark.asyncio
async def test_tool_result_is_returned_as_is(executor) -> None:
    result = await executor.execute(ToolCall(id="c1", name="explicit", arguments='{"text": "x"}'), "conv-1")
    assert result.job_id == "job-9"


@pytest.mark.asyncio
async def test_unknown_tool_is_a_failed_result(executor) -> None:
    result = await executor.execute(ToolCall(id="c1", name="ghost"), "conv-1")
    assert result == ToolResult(success=False, error="Unknown tool: ghost")


@pytest.mark.asyncio
async def test_invalid_arguments_are_a_failed_result(executor) -> None:
    result = await executor.execute(ToolCall(id="c1", name="echo", arguments="{}"), "conv-1")
    assert result.success is False
    assert result.error.startswith("Invalid arguments for echo")
    assert seen == []


@pytest.mark.asyncio
async def test_tool_execution_error_message_is_kept(executor) -> None:
    result = await executor.execute(ToolCall(id="c1", name="refuse", arguments='{"text": "x"}'), "conv-1")
    assert result == ToolResult(success=False, error="not allowed right now")


@pytest.mark.asyncio
async def test_unexpected_exception_never_escapes(executor, caplog) -> None:
    result = await executor.execute(ToolCall(id="c1", name="crash", arguments='{"text": "x"}'), "conv-1")
    assert result.success is False
    assert result.error == "'missing'"
    assert "Tool crash raised" in caplog.text
