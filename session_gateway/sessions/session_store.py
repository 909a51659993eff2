# session_gateway/sessions/session_store.py
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Dict, Optional

import redis.asyncio as aioredis
from pydantic import ValidationError
from redis.exceptions import RedisError, WatchError

from ..errors import StoreError
from .session_data import SessionRecord, utcnow

logger = logging.getLogger(__name__)


class StoreConnectionState(str, Enum):
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTED = "disconnected"
    DISCONNECTING = "disconnecting"


class AbstractSessionStore(ABC):
    """
    Abstract base class defining the interface for session storage implementations.

    Every operation may raise StoreError. Expired records are reported as
    missing on read whether or not they have been physically removed.
    """

    _state: StoreConnectionState = StoreConnectionState.DISCONNECTED

    @property
    def connection_state(self) -> StoreConnectionState:
        return self._state

    @abstractmethod
    async def get(self, session_id: str) -> Optional[SessionRecord]:
        """Load a session by id. Returns None if missing or expired."""
        pass

    @abstractmethod
    async def put(self, record: SessionRecord) -> None:
        """Write the full session record."""
        pass

    @abstractmethod
    async def delete(self, session_id: str) -> None:
        """Delete a session by id. Deleting a missing session is not an error."""
        pass

    @abstractmethod
    async def touch(self, session_id: str) -> bool:
        """
        Refresh last_accessed_at and slide expires_at without rewriting the payload.

        A no-op while last_accessed_at is younger than the touch-debounce
        window. Returns True only if a write happened.
        """
        pass

    @abstractmethod
    async def ping(self) -> bool:
        """Check connectivity and update connection_state."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Connect to the backing service. Raises StoreError if it is unreachable."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Release store resources."""
        pass

    async def sweep_expired(self) -> int:
        """Physically remove expired records. Returns the number removed."""
        return 0


class RedisSessionStore(AbstractSessionStore):
    """
    Redis-based session storage.

    Each session is a hash (payload, created_at, last_accessed_at,
    expires_at) so that touch can update recency without rewriting the
    payload. EXPIREAT mirrors expires_at, letting Redis do the physical
    deletion.
    """

    KEY_PREFIX: str = "gateway:session:"

    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int,
        touch_after_seconds: int,
        operation_timeout_seconds: float,
    ):
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.touch_after_seconds = touch_after_seconds
        self.operation_timeout_seconds = operation_timeout_seconds
        self._state = StoreConnectionState.DISCONNECTED
        logger.info(
            f"RedisSessionStore initialized. TTL: {ttl_seconds}s, touch after: {touch_after_seconds}s, "
            f"operation timeout: {operation_timeout_seconds}s"
        )

    def _construct_redis_key(self, session_id: str) -> str:
        if not session_id:
            raise ValueError("session_id is required to construct a session key.")
        return f"{self.KEY_PREFIX}{session_id}"

    async def _call(self, operation: str, session_id: Optional[str], awaitable: Awaitable[Any]) -> Any:
        """Run one Redis command under the operation timeout, mapping failures to StoreError."""
        try:
            result = await asyncio.wait_for(awaitable, timeout=self.operation_timeout_seconds)
        except asyncio.TimeoutError as e:
            self._state = StoreConnectionState.DISCONNECTED
            logger.error(
                f"Redis '{operation}' timed out after {self.operation_timeout_seconds}s "
                f"(session {session_id[:8] if session_id else '-'})"
            )
            raise StoreError(operation, session_id, "timed out") from e
        except (RedisError, OSError) as e:
            self._state = StoreConnectionState.DISCONNECTED
            logger.error(
                f"Redis '{operation}' failed (session {session_id[:8] if session_id else '-'}): {e}"
            )
            raise StoreError(operation, session_id, type(e).__name__) from e

        if self._state is StoreConnectionState.DISCONNECTED:
            self._state = StoreConnectionState.CONNECTED
        return result

    @staticmethod
    def _decode_hash(raw: Dict[Any, Any]) -> Dict[str, str]:
        return {
            (k.decode("utf-8") if isinstance(k, bytes) else k): (v.decode("utf-8") if isinstance(v, bytes) else v)
            for k, v in raw.items()
        }

    async def initialize(self) -> None:
        logger.info("Connecting to Redis session store.")
        self._state = StoreConnectionState.CONNECTING
        try:
            await self._call("ping", None, self._client.ping())
        except StoreError:
            self._state = StoreConnectionState.DISCONNECTED
            logger.error("Failed to connect to Redis session store.")
            raise
        self._state = StoreConnectionState.CONNECTED
        logger.info("Successfully connected to Redis and pinged.")

    async def teardown(self) -> None:
        logger.info("Closing Redis connection.")
        self._state = StoreConnectionState.DISCONNECTING
        try:
            await self._client.aclose()
        finally:
            self._state = StoreConnectionState.DISCONNECTED
        logger.info("Redis connection closed.")

    async def ping(self) -> bool:
        try:
            await self._call("ping", None, self._client.ping())
        except StoreError:
            return False
        self._state = StoreConnectionState.CONNECTED
        return True

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        key = self._construct_redis_key(session_id)
        raw = await self._call("get", session_id, self._client.hgetall(key))
        if not raw:
            logger.debug(f"No session found for id prefix '{session_id[:8]}'")
            return None

        fields = self._decode_hash(raw)
        try:
            record = SessionRecord(
                id=session_id,
                payload=json.loads(fields["payload"]),
                created_at=fields["created_at"],
                last_accessed_at=fields["last_accessed_at"],
                expires_at=fields["expires_at"],
            )
        except (KeyError, ValueError, ValidationError) as e:
            # Unreadable records cannot be trusted; treat as missing
            logger.error(f"Discarding corrupt session record (id prefix '{session_id[:8]}'): {e}")
            await self.delete(session_id)
            return None

        if record.is_expired():
            logger.debug(f"Session expired (id prefix '{session_id[:8]}'), deleting lazily")
            await self.delete(session_id)
            return None
        return record

    async def put(self, record: SessionRecord) -> None:
        key = self._construct_redis_key(record.id)
        mapping = {
            "payload": json.dumps(record.model_dump(mode="json")["payload"]),
            "created_at": record.created_at.isoformat(),
            "last_accessed_at": record.last_accessed_at.isoformat(),
            "expires_at": record.expires_at.isoformat(),
        }
        pipe = self._client.pipeline(transaction=True)
        pipe.hset(key, mapping=mapping)
        pipe.expireat(key, int(record.expires_at.timestamp()))
        await self._call("put", record.id, pipe.execute())
        logger.debug(f"Saved session (id prefix '{record.id[:8]}'), expires {record.expires_at.isoformat()}")

    async def delete(self, session_id: str) -> None:
        key = self._construct_redis_key(session_id)
        deleted_count = await self._call("delete", session_id, self._client.delete(key))
        if deleted_count:
            logger.info(f"Session deleted (id prefix '{session_id[:8]}')")

    @staticmethod
    async def _execute_watched(pipe: Any) -> Optional[list]:
        """Execute a WATCHed transaction; None if the watched key changed first."""
        try:
            return await pipe.execute()
        except WatchError:
            return None

    async def touch(self, session_id: str) -> bool:
        key = self._construct_redis_key(session_id)
        # WATCH aborts the write if a concurrent delete or put lands between read and write
        pipe = self._client.pipeline(transaction=True)
        try:
            await self._call("touch", session_id, pipe.watch(key))
            last_raw, expires_raw = await self._call(
                "touch", session_id, pipe.hmget(key, ["last_accessed_at", "expires_at"])
            )
            if last_raw is None or expires_raw is None:
                return False

            now = utcnow()
            last_accessed_at = datetime.fromisoformat(
                last_raw.decode("utf-8") if isinstance(last_raw, bytes) else last_raw
            )
            expires_at = datetime.fromisoformat(
                expires_raw.decode("utf-8") if isinstance(expires_raw, bytes) else expires_raw
            )
            if now >= expires_at:
                await self.delete(session_id)
                return False
            if now - last_accessed_at < timedelta(seconds=self.touch_after_seconds):
                return False

            new_expires_at = now + timedelta(seconds=self.ttl_seconds)
            pipe.multi()
            pipe.hset(key, mapping={
                "last_accessed_at": now.isoformat(),
                "expires_at": new_expires_at.isoformat(),
            })
            pipe.expireat(key, int(new_expires_at.timestamp()))
            if await self._call("touch", session_id, self._execute_watched(pipe)) is None:
                logger.debug(f"Touch skipped, session changed concurrently (id prefix '{session_id[:8]}')")
                return False
        finally:
            await pipe.reset()
        logger.debug(f"Touched session (id prefix '{session_id[:8]}')")
        return True
