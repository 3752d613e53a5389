"""LangGraph execution engine.

``AgentEngine`` drives a conversation turn by turn until the model answers
without tool calls, a human decision is required, or the iteration cap is hit.

Execution model
---------------

Each invocation (``stream_conversation`` or ``resume_conversation``) runs a
compiled LangGraph state machine over a ``_LoopState``:

- ``think`` streams one provider round-trip. Text deltas are forwarded through
  a throttle; tool-call fragments are merged into complete calls.
- ``dispatch`` checks every call against the registry, announces it with
  ``tool_call_start``, validates gated calls and persists the assistant
  message. It then routes to ``pause_for_approval`` (any gated call), to
  ``execute`` (only auto calls) or straight to ``next_turn`` (validation
  failed; the errors are fed back to the model).
- ``execute`` runs the calls sequentially in declared order, persisting each
  result before the next call starts.
- ``next_turn`` opens the assistant placeholder of the following iteration.
- ``finish``, ``pause_for_approval`` and ``exhausted`` are terminal.

Events are written to LangGraph's custom stream and yielded to the caller in
the order the corresponding state was persisted.

Pause/resume
------------

Nothing about a pause is stored besides the conversation status: the pending
set is re-derived from the message log by ``runtime.approval`` on resume.
Approving runs the whole held-back batch (auto calls included) after a single
credit check; rejecting answers every unresolved call with ``USER_REJECTED``.
"""

import asyncio
import json
import logging
from contextlib import aclosing
from typing import Any, AsyncIterator, Mapping, Optional, Sequence

from langgraph.graph import END, StateGraph
from langgraph.types import StreamWriter

from ..errors import (
    AgentEngineError,
    ConversationBusyError,
    ConversationNotFoundError,
    InsufficientCreditError,
    MaxIterationsExceeded,
    NothingToResumeError,
    ProviderTimeoutError,
    UnknownToolError,
)
from ..schemas.domain import (
    BATCH_VALIDATION_FAILED,
    USER_REJECTED,
    USER_SKIPPED,
    Conversation,
    ConversationStatus,
    Message,
    MessageRole,
    ToolCall,
    ToolResult,
)
from ..schemas.events import (
    AssistantMessageIdEvent,
    CompleteEvent,
    CompletionOutcome,
    EngineEvent,
    ErrorEvent,
    InterruptEvent,
    ToolCallEndEvent,
    ToolCallStartEvent,
    UserMessageIdEvent,
)
from .approval import describe_pending_batch, find_pending_approvals, find_unresolved_tool_calls, last_assistant_message
from .formatter import format_tool_result
from .locks import ConversationLocks
from .models import ConversationState, EngineConfig, EngineDeps, LoopPhase, _LoopState
from .state import ConversationStateManager
from .streaming import DeltaThrottle, ToolCallAccumulator

logger = logging.getLogger(__name__)


def insert_tool_result(messages: list[Message], result: Message) -> None:
    """Place a tool message right after its assistant message and that message's earlier results."""
    for i in range(len(messages) - 1, -1, -1):
        msg = messages[i]
        if msg.role == MessageRole.assistant and any(c.id == result.tool_call_id for c in msg.tool_calls):
            j = i + 1
            while j < len(messages) and messages[j].role == MessageRole.tool:
                j += 1
            messages.insert(j, result)
            return
    messages.append(result)


class AgentEngine:
    """Drive tool-calling conversations with human approval gates.

    The engine holds no per-conversation state between invocations; it can be
    shared by every request of a process.
    """

    def __init__(
        self,
        *,
        deps: EngineDeps,
        config: Optional[EngineConfig] = None,
        locks: Optional[ConversationLocks] = None,
    ) -> None:
        """
        Initialize the AgentEngine.

        Args:
            deps: Repositories and collaborators.
            config: Tunables; defaults to ``EngineConfig()``.
            locks: Shared in-process lock registry; one is created if omitted.
        """
        self._deps = deps
        self._config = config or EngineConfig()
        self._locks = locks or ConversationLocks()
        self._state = ConversationStateManager(
            conversations=deps.conversations,
            messages=deps.messages,
            registry=deps.registry,
            prompt_builder=deps.prompt_builder,
        )
        self._graph = self._build_graph()

    @property
    def state_manager(self) -> ConversationStateManager:
        return self._state

    def _build_graph(self):
        """Build and compile the LangGraph state machine."""
        g: StateGraph = StateGraph(_LoopState)
        g.add_node("think", self._node_think)
        g.add_node("dispatch", self._node_dispatch)
        g.add_node("execute", self._node_execute)
        g.add_node("next_turn", self._node_next_turn)
        g.add_node("pause_for_approval", self._node_pause_for_approval)
        g.add_node("finish", self._node_finish)
        g.add_node("exhausted", self._node_exhausted)

        g.set_entry_point("think")
        g.add_conditional_edges(
            "think",
            self._route,
            {
                LoopPhase.dispatch.value: "dispatch",
                LoopPhase.finish.value: "finish",
                LoopPhase.exhausted.value: "exhausted",
            },
        )
        g.add_conditional_edges(
            "dispatch",
            self._route,
            {
                LoopPhase.pause.value: "pause_for_approval",
                LoopPhase.execute.value: "execute",
                LoopPhase.next_turn.value: "next_turn",
            },
        )
        g.add_edge("execute", "next_turn")
        g.add_edge("next_turn", "think")
        g.add_edge("pause_for_approval", END)
        g.add_edge("finish", END)
        g.add_edge("exhausted", END)
        return g.compile()

    @staticmethod
    def _route(state: _LoopState) -> str:
        return LoopPhase(state["phase"]).value

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def stream_conversation(
        self,
        conversation_id: str,
        user_message: str,
        *,
        context: Optional[Mapping[str, Any]] = None,
    ) -> AsyncIterator[EngineEvent]:
        """Start a new turn with a user message and stream its events.

        If the previous turn was suspended for approval, its unresolved tool
        calls are answered with ``USER_REJECTED`` first.

        Args:
            conversation_id: The conversation to continue.
            user_message: The user's text.
            context: Optional replacement of the stored prompt context.
        """
        try:
            async with self._locks.hold(conversation_id):
                state = await self._state.load(conversation_id)
                await self._claim(state.conversation)
                turn = self._start_turn(state, user_message, context)
                async with aclosing(self._guarded(conversation_id, turn)) as stream:
                    async for event in stream:
                        yield event
        except (ConversationBusyError, ConversationNotFoundError) as exc:
            yield ErrorEvent(message=exc.message, code=exc.code)

    async def resume_conversation(
        self,
        conversation_id: str,
        *,
        approved: bool,
        modified_params: Optional[Mapping[str, Mapping[str, Any]]] = None,
        feedback: Optional[str] = None,
        disabled_ids: Optional[Sequence[str]] = None,
    ) -> AsyncIterator[EngineEvent]:
        """Answer a pending approval and continue the turn.

        Args:
            conversation_id: The suspended conversation.
            approved: Whether the human approved the pending batch.
            modified_params: Replacement arguments keyed by tool call id.
            feedback: Text for the model when rejecting; without it the turn ends.
            disabled_ids: Tool call ids to skip while approving the rest.
        """
        try:
            async with self._locks.hold(conversation_id):
                state = await self._state.load(conversation_id)
                if not find_pending_approvals(state.messages, self._deps.registry):
                    raise NothingToResumeError(conversation_id)
                await self._claim(state.conversation)
                resume = self._resume(
                    state,
                    approved=approved,
                    modified_params=modified_params or {},
                    feedback=feedback,
                    disabled_ids=set(disabled_ids or ()),
                )
                async with aclosing(self._guarded(conversation_id, resume)) as stream:
                    async for event in stream:
                        yield event
        except (ConversationBusyError, ConversationNotFoundError, NothingToResumeError) as exc:
            yield ErrorEvent(message=exc.message, code=exc.code)

    # ------------------------------------------------------------------
    # Invocation bodies
    # ------------------------------------------------------------------

    async def _claim(self, conversation: Conversation) -> None:
        if not await self._deps.conversations.claim(conversation.id, expected_version=conversation.version):
            raise ConversationBusyError(conversation.id)

    async def _guarded(self, conversation_id: str, events: AsyncIterator[EngineEvent]) -> AsyncIterator[EngineEvent]:
        """Outer boundary: turn any escaping error into ``error`` + ``complete{done}``."""
        try:
            async with aclosing(events) as stream:
                async for event in stream:
                    yield event
        except Exception as exc:
            if isinstance(exc, AgentEngineError):
                logger.warning("Turn of conversation %s failed: [%s] %s", conversation_id, exc.code, exc.message)
                error = ErrorEvent(message=exc.message, code=exc.code)
            else:
                logger.exception("Unhandled error while driving conversation %s", conversation_id)
                error = ErrorEvent(message=str(exc) or exc.__class__.__name__, code="internal_error")
            try:
                await self._state.set_status(conversation_id, ConversationStatus.completed)
            except Exception:
                logger.exception("Could not mark conversation %s completed", conversation_id)
            yield error
            yield CompleteEvent(outcome=CompletionOutcome.done)

    async def _start_turn(
        self,
        state: ConversationState,
        user_message: str,
        context: Optional[Mapping[str, Any]],
    ) -> AsyncIterator[EngineEvent]:
        conversation_id = state.conversation.id
        messages = list(state.messages)

        for call in find_unresolved_tool_calls(messages):
            logger.info("New user message interrupts pending tool call %s (%s)", call.id, call.name)
            yield await self._record_result(conversation_id, messages, call, ToolResult.failure(USER_REJECTED))

        user = await self._state.save_user_message(conversation_id, user_message)
        messages.append(user)
        yield UserMessageIdEvent(message_id=user.id)

        if context is not None:
            await self._state.save_context(conversation_id, dict(context))
            if self._deps.prompt_builder is not None:
                conversation = state.conversation.model_copy(update={"context": dict(context)})
                system = self._deps.prompt_builder.build_system_messages(conversation)
                messages = [*system, *(m for m in messages if m.role != MessageRole.system)]

        await self._state.set_status(conversation_id, ConversationStatus.active)
        placeholder = await self._state.create_assistant_placeholder(conversation_id)
        yield AssistantMessageIdEvent(message_id=placeholder.id)

        async for event in self._run_loop(conversation_id, messages, placeholder.id):
            yield event

    async def _resume(
        self,
        state: ConversationState,
        *,
        approved: bool,
        modified_params: Mapping[str, Mapping[str, Any]],
        feedback: Optional[str],
        disabled_ids: set[str],
    ) -> AsyncIterator[EngineEvent]:
        conversation = state.conversation
        conversation_id = conversation.id
        messages = list(state.messages)
        assistant = last_assistant_message(messages)
        if assistant is None:
            raise NothingToResumeError(conversation_id)
        batch = find_unresolved_tool_calls(messages)

        await self._state.set_status(conversation_id, ConversationStatus.active)
        yield AssistantMessageIdEvent(message_id=assistant.id)

        if approved:
            calls: list[ToolCall] = []
            edited: list[ToolCall] = []
            for call in batch:
                if call.id not in disabled_ids and call.id in modified_params:
                    call = call.model_copy(
                        update={"arguments": json.dumps(dict(modified_params[call.id]), ensure_ascii=False)}
                    )
                    edited.append(call)
                calls.append(call)
            enabled = [c for c in calls if c.id not in disabled_ids]

            cost = await self._deps.credits.estimate(enabled)
            if cost.total > 0:
                balance = await self._deps.credits.check_balance(conversation.user_id, cost.total)
                if not balance.has_enough:
                    await self._state.set_status(conversation_id, ConversationStatus.awaiting_approval)
                    err = InsufficientCreditError(cost.total, balance.current_balance)
                    logger.info("Conversation %s: %s", conversation_id, err.message)
                    yield ErrorEvent(
                        message=err.message,
                        code=err.code,
                        required=err.required,
                        current_balance=err.current_balance,
                    )
                    return

            if edited:
                for call in edited:
                    await self._state.patch_tool_call(assistant.id, call)
                by_id = {c.id: c for c in edited}
                patched = assistant.model_copy(
                    update={"tool_calls": [by_id.get(c.id, c) for c in assistant.tool_calls]}
                )
                messages[messages.index(assistant)] = patched

            for call in calls:
                if call.id in disabled_ids:
                    yield await self._record_result(conversation_id, messages, call, ToolResult.failure(USER_SKIPPED))
                else:
                    yield await self._execute_call(conversation_id, messages, call)
        else:
            for call in batch:
                yield await self._record_result(conversation_id, messages, call, ToolResult.failure(USER_REJECTED))
            text = (feedback or "").strip()
            if not text:
                await self._state.set_status(conversation_id, ConversationStatus.completed)
                yield CompleteEvent(outcome=CompletionOutcome.rejected)
                return
            user = await self._state.save_user_message(conversation_id, text)
            messages.append(user)
            yield UserMessageIdEvent(message_id=user.id)

        placeholder = await self._state.create_assistant_placeholder(conversation_id)
        yield AssistantMessageIdEvent(message_id=placeholder.id)
        async for event in self._run_loop(conversation_id, messages, placeholder.id):
            yield event

    async def _run_loop(
        self, conversation_id: str, messages: list[Message], assistant_message_id: str
    ) -> AsyncIterator[EngineEvent]:
        initial: _LoopState = {
            "conversation_id": conversation_id,
            "messages": messages,
            "assistant_message_id": assistant_message_id,
            "iteration": 0,
        }
        config = {"recursion_limit": self._config.max_iterations * 4 + 8}
        async with aclosing(self._graph.astream(initial, config=config, stream_mode="custom")) as stream:
            async for event in stream:
                yield event

    # ------------------------------------------------------------------
    # Tool results
    # ------------------------------------------------------------------

    async def _record_result(
        self, conversation_id: str, messages: list[Message], call: ToolCall, result: ToolResult
    ) -> ToolCallEndEvent:
        stored = await self._state.save_tool_result(conversation_id, call.id, result)
        insert_tool_result(messages, stored)
        summary = None
        if result.success:
            summary = format_tool_result(self._deps.registry.lookup(call.name), result.data)
        return ToolCallEndEvent(id=call.id, name=call.name, success=result.success, result=summary, error=result.error)

    async def _execute_call(self, conversation_id: str, messages: list[Message], call: ToolCall) -> ToolCallEndEvent:
        try:
            result = await self._deps.executor.execute(call, conversation_id)
        except Exception as exc:
            logger.exception("Executor raised for tool call %s (%s)", call.id, call.name)
            result = ToolResult.failure(str(exc) or exc.__class__.__name__)
        return await self._record_result(conversation_id, messages, call, result)

    # ------------------------------------------------------------------
    # Graph nodes
    # ------------------------------------------------------------------

    async def _node_think(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        if state["iteration"] >= self._config.max_iterations:
            return {"phase": LoopPhase.exhausted}

        throttle = DeltaThrottle(self._config.stream_throttle_ms)
        fragments = ToolCallAccumulator()
        timeout = self._config.iteration_timeout_seconds
        try:
            async with asyncio.timeout(timeout):
                stream = self._deps.provider.stream_chat(
                    state["messages"], self._deps.registry.schemas(), self._config.provider_options()
                )
                async for delta in stream:
                    for event in throttle.feed(delta):
                        writer(event)
                    for fragment in delta.tool_calls:
                        fragments.add(fragment)
        except TimeoutError as exc:
            raise ProviderTimeoutError(timeout or 0) from exc

        for event in throttle.drain():
            writer(event)

        draft = Message(
            id=state["assistant_message_id"],
            conversation_id=state["conversation_id"],
            role=MessageRole.assistant,
            content=throttle.content,
            reasoning_content=throttle.reasoning or None,
            tool_calls=fragments.build(),
        )
        logger.debug(
            "Iteration %d of %s: %d chars, %d tool call(s)",
            state["iteration"] + 1,
            state["conversation_id"],
            len(draft.content),
            len(draft.tool_calls),
        )
        return {
            "draft": draft,
            "iteration": state["iteration"] + 1,
            "phase": LoopPhase.dispatch if draft.tool_calls else LoopPhase.finish,
        }

    async def _node_dispatch(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        draft = state["draft"]
        if draft is None:
            raise ValueError("no assistant draft to dispatch")
        conversation_id = state["conversation_id"]
        registry = self._deps.registry

        for call in draft.tool_calls:
            if not registry.has(call.name):
                raise UnknownToolError(call.name)

        for call in draft.tool_calls:
            writer(
                ToolCallStartEvent(
                    id=call.id, name=call.name, display_name=registry.display_name(call.name), arguments=call.arguments
                )
            )

        gated = [c for c in draft.tool_calls if registry.needs_confirmation(c.name)]
        failures: dict[str, list[str]] = {}
        for call in gated:
            outcome = await self._deps.validator.validate(call.name, call.arguments)
            for warning in outcome.warnings:
                logger.warning("Tool call %s (%s): %s", call.id, call.name, warning)
            if not outcome.valid:
                failures[call.id] = outcome.errors

        await self._state.save_assistant(draft)
        messages = [*state["messages"], draft]

        if failures:
            logger.info("Parameter validation failed for %d tool call(s); returning errors to the model", len(failures))
            for call in draft.tool_calls:
                errors = failures.get(call.id)
                if errors:
                    result = ToolResult.failure("Parameter validation failed: " + "; ".join(errors))
                else:
                    result = ToolResult.failure(BATCH_VALIDATION_FAILED)
                writer(await self._record_result(conversation_id, messages, call, result))
            return {"messages": messages, "phase": LoopPhase.next_turn}

        if gated:
            return {"messages": messages, "phase": LoopPhase.pause}
        return {"messages": messages, "phase": LoopPhase.execute}

    async def _node_execute(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        messages = list(state["messages"])
        for call in find_unresolved_tool_calls(messages):
            writer(await self._execute_call(state["conversation_id"], messages, call))
        return {"messages": messages}

    async def _node_next_turn(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        placeholder = await self._state.create_assistant_placeholder(state["conversation_id"])
        writer(AssistantMessageIdEvent(message_id=placeholder.id))
        return {"assistant_message_id": placeholder.id, "draft": None}

    async def _node_pause_for_approval(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        conversation_id = state["conversation_id"]
        batch = describe_pending_batch(state["messages"], self._deps.registry)
        if batch is None:
            raise ValueError("no pending approvals to pause on")
        await self._state.set_status(conversation_id, ConversationStatus.awaiting_approval)
        logger.info("Conversation %s awaiting approval for %d tool call(s)", conversation_id, len(batch.pending))
        writer(InterruptEvent(pending=batch))
        writer(CompleteEvent(outcome=CompletionOutcome.pending_confirmation))
        return {}

    async def _node_finish(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        draft = state["draft"]
        if draft is None:
            raise ValueError("no assistant draft to finish")
        await self._state.save_assistant(draft)
        await self._state.set_status(state["conversation_id"], ConversationStatus.completed)
        writer(CompleteEvent(outcome=CompletionOutcome.done))
        return {"messages": [*state["messages"], draft]}

    async def _node_exhausted(self, state: _LoopState, writer: StreamWriter) -> dict[str, Any]:
        err = MaxIterationsExceeded(self._config.max_iterations)
        logger.warning("Conversation %s: %s", state["conversation_id"], err.message)
        await self._state.set_status(state["conversation_id"], ConversationStatus.completed)
        writer(CompleteEvent(outcome=CompletionOutcome.done))
        writer(ErrorEvent(message=err.message, code=err.code))
        return {}
