"""Per-conversation ownership inside one process."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict

from ..errors import ConversationBusyError

logger = logging.getLogger(__name__)


class ConversationLocks:
    """Registry of ``asyncio.Lock`` objects keyed by conversation id.

    ``hold`` never waits: a second driver for a conversation that is already
    being processed is rejected with ``ConversationBusyError``.
    """

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}

    def is_held(self, conversation_id: str) -> bool:
        lock = self._locks.get(conversation_id)
        return bool(lock and lock.locked())

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(conversation_id, asyncio.Lock())
        if lock.locked():
            logger.info("Rejecting concurrent driver for conversation %s", conversation_id)
            raise ConversationBusyError(conversation_id)
        await lock.acquire()
        try:
            yield
        finally:
            lock.release()
            if self._locks.get(conversation_id) is lock:
                del self._locks[conversation_id]
