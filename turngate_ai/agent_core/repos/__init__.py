"""Repository interfaces and SQL implementations for conversation persistence.

The repository layer is the persistence boundary of the execution engine.
Everything the engine needs to survive a restart lives here: conversations
with their status and prompt context, and the append-only message log from
which pending approvals are derived.

The engine is written against the Protocols in ``repos.interfaces`` so it runs
unchanged against the async SQLAlchemy implementation in ``repos.sql`` or the
in-memory fakes used by the unit tests.
"""

from .interfaces import ConversationRepository, MessageRepository

__all__ = [
    "ConversationRepository",
    "MessageRepository",
]
