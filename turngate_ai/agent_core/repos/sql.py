from __future__ import annotations

"""SQLAlchemy async repository implementations.

This module provides the SQL-backed persistence for the repository interfaces
defined in ``turngate_ai.agent_core.repos.interfaces``.

Usage
-----

- Create an async engine with ``create_engine``.
- Create tables with ``create_all`` (tests/dev).
- Create a session factory with ``create_sessionmaker``.
- Build repository instances with ``build_sql_repos``.

Transaction model
-----------------

Each repository method opens an ``AsyncSession``, performs its operation, and
commits, so every persisted message is durable when the method returns. The
engine relies on this: it never suspends before the write that precedes the
suspension has committed.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ..schemas.domain import Conversation, ConversationStatus, Message, MessageRole, ToolCall
from .interfaces import ConversationRepository, MessageRepository
from .models import Base, ConversationRow, MessageRow


def create_engine(db_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Postgres URLs are normalized to the asyncpg driver, e.g. ``postgresql://``
    and ``postgres+psycopg2://`` both become ``postgresql+asyncpg://``.
    """
    url = re.sub(r"^postgres(?:ql)?(?:\+[a-z0-9_]+)?://", "postgresql+asyncpg://", db_url, count=1)
    if url.startswith("sqlite"):
        if ":memory:" in url:
            return create_async_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
        return create_async_engine(url)
    return create_async_engine(url, pool_pre_ping=True)


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
    """Create all tables for the current ORM metadata (tests and local development)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _conversation_from_row(row: ConversationRow) -> Conversation:
    return Conversation(
        id=row.id,
        user_id=row.user_id,
        title=row.title,
        status=ConversationStatus(row.status),
        context=dict(row.context or {}),
        version=row.version,
        created_at=row.created_at,
        updated_at=row.updated_at,
        last_activity_at=row.last_activity_at,
    )


def _message_from_row(row: MessageRow) -> Message:
    return Message(
        id=row.id,
        conversation_id=row.conversation_id,
        role=MessageRole(row.role),
        content=row.content or "",
        reasoning_content=row.reasoning_content,
        tool_calls=[ToolCall.model_validate(c) for c in (row.tool_calls or [])],
        tool_call_id=row.tool_call_id,
        position=row.position,
        created_at=row.created_at,
    )


@dataclass(frozen=True)
class SqlConversationRepository(ConversationRepository):
    """SQL implementation of ``ConversationRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def create(self, conversation: Conversation) -> None:
        async with self.session_factory() as s:
            s.add(
                ConversationRow(
                    id=conversation.id,
                    user_id=conversation.user_id,
                    title=conversation.title,
                    status=conversation.status.value,
                    context=dict(conversation.context),
                    version=conversation.version,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                    last_activity_at=conversation.last_activity_at,
                )
            )
            await s.commit()

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        async with self.session_factory() as s:
            row = await s.get(ConversationRow, conversation_id)
            return None if row is None else _conversation_from_row(row)

    async def list(self, user_id: Optional[str] = None, limit: int = 100, offset: int = 0) -> list[Conversation]:
        async with self.session_factory() as s:
            stmt = select(ConversationRow)
            if user_id:
                stmt = stmt.where(ConversationRow.user_id == user_id)
            stmt = stmt.order_by(ConversationRow.last_activity_at.desc()).offset(offset).limit(limit)
            result = await s.execute(stmt)
            return [_conversation_from_row(r) for r in result.scalars().all()]

    async def update_status(self, conversation_id: str, *, status: ConversationStatus) -> None:
        async with self.session_factory() as s:
            row = await s.get(ConversationRow, conversation_id)
            if row is None:
                return
            now = _utc_now()
            row.status = ConversationStatus(status).value
            row.updated_at = now
            row.last_activity_at = now
            await s.commit()

    async def update_context(self, conversation_id: str, *, context: dict[str, Any]) -> None:
        async with self.session_factory() as s:
            row = await s.get(ConversationRow, conversation_id)
            if row is None:
                return
            row.context = dict(context)
            row.updated_at = _utc_now()
            await s.commit()

    async def claim(self, conversation_id: str, *, expected_version: int) -> bool:
        """
        Bump the conversation version with a conditional UPDATE.

        Args:
            conversation_id: The conversation to claim.
            expected_version: The version observed by the caller.

        Returns:
            True when exactly one row matched the expected version.
        """
        async with self.session_factory() as s:
            now = _utc_now()
            result = await s.execute(
                update(ConversationRow)
                .where(ConversationRow.id == conversation_id, ConversationRow.version == expected_version)
                .values(version=expected_version + 1, updated_at=now, last_activity_at=now)
            )
            await s.commit()
            return result.rowcount == 1


@dataclass(frozen=True)
class SqlMessageRepository(MessageRepository):
    """SQL implementation of ``MessageRepository``."""

    session_factory: async_sessionmaker[AsyncSession]

    async def append(self, message: Message) -> Message:
        """
        Insert a message at the next position of its conversation.

        Args:
            message: The message to append.

        Returns:
            A copy of the message carrying the assigned ``position``.
        """
        async with self.session_factory() as s:
            current = await s.scalar(
                select(func.max(MessageRow.position)).where(MessageRow.conversation_id == message.conversation_id)
            )
            position = 0 if current is None else current + 1
            s.add(
                MessageRow(
                    id=message.id,
                    conversation_id=message.conversation_id,
                    position=position,
                    role=message.role.value,
                    content=message.content,
                    reasoning_content=message.reasoning_content,
                    tool_calls=[c.model_dump() for c in message.tool_calls],
                    tool_call_id=message.tool_call_id,
                    created_at=message.created_at,
                )
            )
            await s.commit()
        return message.model_copy(update={"position": position})

    async def update_assistant(
        self,
        message_id: str,
        *,
        content: str,
        reasoning_content: Optional[str],
        tool_calls: list[ToolCall],
    ) -> None:
        async with self.session_factory() as s:
            row = await s.get(MessageRow, message_id)
            if row is None:
                return
            row.content = content
            row.reasoning_content = reasoning_content
            row.tool_calls = [c.model_dump() for c in tool_calls]
            await s.commit()

    async def update_tool_call_arguments(self, message_id: str, tool_call_id: str, *, arguments: str) -> bool:
        async with self.session_factory() as s:
            row = await s.get(MessageRow, message_id)
            if row is None:
                return False
            patched = False
            calls: list[dict[str, Any]] = []
            for c in row.tool_calls or []:
                if c.get("id") == tool_call_id:
                    c = {**c, "arguments": arguments}
                    patched = True
                calls.append(c)
            if not patched:
                return False
            # Reassign so the JSON column is flagged dirty.
            row.tool_calls = calls
            await s.commit()
            return True

    async def list(self, conversation_id: str) -> list[Message]:
        async with self.session_factory() as s:
            stmt = (
                select(MessageRow)
                .where(MessageRow.conversation_id == conversation_id)
                .order_by(MessageRow.position.asc())
            )
            result = await s.execute(stmt)
            return [_message_from_row(r) for r in result.scalars().all()]


@dataclass(frozen=True)
class SqlRepoBundle:
    """Bundle of SQL repository implementations sharing one session factory."""

    conversations: SqlConversationRepository
    messages: SqlMessageRepository


def build_sql_repos(*, session_factory: async_sessionmaker[AsyncSession]) -> SqlRepoBundle:
    """
    Construct the SQL repositories.

    Args:
        session_factory: The async session maker to use.

    Returns:
        A bundle containing all repository instances.
    """
    return SqlRepoBundle(
        conversations=SqlConversationRepository(session_factory),
        messages=SqlMessageRepository(session_factory),
    )
