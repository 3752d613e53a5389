from __future__ import annotations

"""SQLAlchemy ORM models for conversation persistence.

These ORM models define the SQL schema used by ``turngate_ai.agent_core.repos.sql``.

- Conversations store owner, status, prompt context and the optimistic
  concurrency ``version``.
- Messages form the append-only log. ``position`` is a per-conversation
  sequence and is the only ordering the engine relies on.

Table names are prefixed with ``tg_`` to avoid collisions in shared databases.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

_JSON = JSON().with_variant(JSONB, "postgresql")


class Base(DeclarativeBase):
    """Declarative base for all ORM models."""


class ConversationRow(Base):
    """Row model for ``tg_conversations``."""

    __tablename__ = "tg_conversations"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    title: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    status: Mapped[str] = mapped_column(String(32))
    context: Mapped[Dict[str, Any]] = mapped_column(_JSON, default=dict)
    version: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    last_activity_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class MessageRow(Base):
    """Row model for ``tg_messages``.

    ``tool_calls`` holds ``[{"id", "name", "arguments"}]`` for assistant rows;
    ``tool_call_id`` is set on tool rows only.
    """

    __tablename__ = "tg_messages"
    __table_args__ = (
        UniqueConstraint("conversation_id", "position", name="uq_tg_messages_position"),
        Index("ix_tg_messages_conversation_position", "conversation_id", "position"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    conversation_id: Mapped[str] = mapped_column(String(64), ForeignKey("tg_conversations.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer)

    role: Mapped[str] = mapped_column(String(16))
    content: Mapped[str] = mapped_column(Text, default="")
    reasoning_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tool_calls: Mapped[List[Dict[str, Any]]] = mapped_column(_JSON, default=list)
    tool_call_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
