from __future__ import annotations

"""Orchestrator service.

Wires the execution engine to the SQL repositories, the configured tools, the
credit gate and the model provider, and exposes the operations the API layer
needs. One instance serves the whole process so the in-process conversation
locks are shared by every request.
"""

from typing import Any, AsyncIterator, Dict, List, Optional

from turngate_ai.agent_core.credits import PricedCreditGate, StaticBalanceProvider
from turngate_ai.agent_core.providers import OpenAICompatibleProvider
from turngate_ai.agent_core.repos.sql import SqlRepoBundle, build_sql_repos
from turngate_ai.agent_core.runtime import (
    AgentEngine,
    EngineConfig,
    EngineDeps,
    StaticPromptBuilder,
    describe_pending_batch,
)
from turngate_ai.agent_core.schemas.domain import Conversation, Message, MessageRole, PendingApprovalBatch
from turngate_ai.agent_core.schemas.events import EngineEvent
from turngate_ai.agent_core.tools import (
    RegistryToolExecutor,
    SchemaParameterValidator,
    ToolRegistry,
    load_tool_modules,
)
from turngate_ai.core.logging_config import get_logger
from turngate_ai.server.core.config import Settings, settings
from turngate_ai.server.core.database import async_session_maker

logger = get_logger(__name__)


class OrchestratorService:
    """
    Service layer between the HTTP API and the ``AgentEngine``.
    """

    def __init__(
        self,
        *,
        app_settings: Optional[Settings] = None,
        repos: Optional[SqlRepoBundle] = None,
        engine: Optional[AgentEngine] = None,
    ) -> None:
        cfg = app_settings or settings
        self.repos: SqlRepoBundle = repos or build_sql_repos(session_factory=async_session_maker)

        self.registry = ToolRegistry()
        load_tool_modules(self.registry, cfg.tool_modules)
        logger.info(f"Registered tools: {', '.join(self.registry.names()) or '<none>'}")

        self.engine = engine or AgentEngine(deps=self._build_engine_deps(cfg), config=self._build_engine_config(cfg))

    def _build_engine_deps(self, cfg: Settings) -> EngineDeps:
        provider_cfg = cfg.provider
        return EngineDeps(
            conversations=self.repos.conversations,
            messages=self.repos.messages,
            registry=self.registry,
            validator=SchemaParameterValidator(self.registry),
            executor=RegistryToolExecutor(self.registry),
            credits=PricedCreditGate(
                cfg.tool_prices,
                StaticBalanceProvider(default=cfg.default_credit_balance),
            ),
            provider=OpenAICompatibleProvider(
                api_key=provider_cfg.api_key,
                model=provider_cfg.model,
                base_url=provider_cfg.base_url,
                timeout=provider_cfg.request_timeout,
            ),
            prompt_builder=StaticPromptBuilder(cfg.system_prompt),
        )

    @staticmethod
    def _build_engine_config(cfg: Settings) -> EngineConfig:
        engine_cfg = cfg.engine
        return EngineConfig(
            max_iterations=engine_cfg.max_iterations,
            stream_throttle_ms=engine_cfg.stream_throttle_ms,
            iteration_timeout_seconds=engine_cfg.iteration_timeout_seconds,
            temperature=engine_cfg.temperature,
            max_tokens=engine_cfg.max_tokens,
        )

    async def create_conversation(
        self, *, user_id: str, title: Optional[str] = None, context: Optional[Dict[str, Any]] = None
    ) -> Conversation:
        conversation = Conversation(user_id=user_id, title=title, context=dict(context or {}))
        await self.repos.conversations.create(conversation)
        logger.info(f"Created conversation {conversation.id} for user {user_id}")
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.repos.conversations.get(conversation_id)

    async def list_conversations(
        self, *, user_id: Optional[str] = None, limit: int = 100, offset: int = 0
    ) -> List[Conversation]:
        return await self.repos.conversations.list(user_id=user_id, limit=limit, offset=offset)

    async def get_messages(self, conversation_id: str) -> List[Message]:
        """Return the stored log in provider order, without the rebuilt system messages."""
        state = await self.engine.state_manager.load(conversation_id)
        return [m for m in state.messages if m.role != MessageRole.system]

    async def get_pending(self, conversation_id: str) -> Optional[PendingApprovalBatch]:
        state = await self.engine.state_manager.load(conversation_id)
        return describe_pending_batch(state.messages, self.registry)

    def chat(
        self, conversation_id: str, message: str, *, context: Optional[Dict[str, Any]] = None
    ) -> AsyncIterator[EngineEvent]:
        return self.engine.stream_conversation(conversation_id, message, context=context)

    def resume(
        self,
        conversation_id: str,
        *,
        approved: bool,
        modified_params: Optional[Dict[str, Dict[str, Any]]] = None,
        feedback: Optional[str] = None,
        disabled_ids: Optional[List[str]] = None,
    ) -> AsyncIterator[EngineEvent]:
        return self.engine.resume_conversation(
            conversation_id,
            approved=approved,
            modified_params=modified_params,
            feedback=feedback,
            disabled_ids=disabled_ids,
        )


_orchestrator: Optional[OrchestratorService] = None


def get_orchestrator() -> OrchestratorService:
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = OrchestratorService()
    return _orchestrator
