# session_gateway/sessions/memory_store.py
import logging
from datetime import timedelta
from typing import Dict, Optional

from .session_data import SessionRecord, utcnow
from .session_store import AbstractSessionStore, StoreConnectionState

logger = logging.getLogger(__name__)


class InMemorySessionStore(AbstractSessionStore):
    """
    Dict-backed session store for local development and tests.

    Not durable and not shared between processes; the configuration layer
    refuses it in production.
    """

    def __init__(self, ttl_seconds: int, touch_after_seconds: int):
        self.ttl_seconds = ttl_seconds
        self.touch_after_seconds = touch_after_seconds
        self._records: Dict[str, SessionRecord] = {}
        self._state = StoreConnectionState.DISCONNECTED
        logger.info(f"InMemorySessionStore initialized. Session TTL: {ttl_seconds}s")

    async def initialize(self) -> None:
        self._state = StoreConnectionState.CONNECTED

    async def teardown(self) -> None:
        self._state = StoreConnectionState.DISCONNECTING
        self._records.clear()
        self._state = StoreConnectionState.DISCONNECTED

    async def ping(self) -> bool:
        return self._state is StoreConnectionState.CONNECTED

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        record = self._records.get(session_id)
        if record is None:
            return None
        if record.is_expired():
            self._records.pop(session_id, None)
            return None
        # Callers get a copy so in-request mutation never leaks into the store
        return record.model_copy(deep=True)

    async def put(self, record: SessionRecord) -> None:
        self._records[record.id] = record.model_copy(deep=True)

    async def delete(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    async def touch(self, session_id: str) -> bool:
        record = self._records.get(session_id)
        if record is None:
            return False
        now = utcnow()
        if record.is_expired(now):
            self._records.pop(session_id, None)
            return False
        if not record.needs_touch(self.touch_after_seconds, now):
            return False
        record.last_accessed_at = now
        record.expires_at = now + timedelta(seconds=self.ttl_seconds)
        return True

    async def sweep_expired(self) -> int:
        now = utcnow()
        expired = [sid for sid, record in self._records.items() if record.is_expired(now)]
        for sid in expired:
            del self._records[sid]
        if expired:
            logger.info(f"Swept {len(expired)} expired session(s)")
        return len(expired)
