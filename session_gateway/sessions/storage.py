# session_gateway/sessions/storage.py
import logging
from typing import Optional

import redis.asyncio as aioredis

from ..config import GatewayConfig
from .memory_store import InMemorySessionStore
from .session_store import AbstractSessionStore, RedisSessionStore

logger = logging.getLogger(__name__)


def create_session_store(
    config: GatewayConfig,
    redis_client: Optional[aioredis.Redis] = None,
) -> AbstractSessionStore:
    """
    Build the session store selected by the configuration.

    The store handle is resolved here, once. Connectivity is verified by
    initialize() during application startup, which aborts startup instead of
    degrading at request time.
    """
    if config.session_store_backend == "memory":
        logger.warning("Using the in-memory session store. Sessions are lost on restart.")
        return InMemorySessionStore(
            ttl_seconds=config.session_ttl_seconds,
            touch_after_seconds=config.session_touch_after_seconds,
        )

    if redis_client is None:
        # Keep bytes for explicit encoding control
        redis_client = aioredis.from_url(config.redis_url, decode_responses=False)
    return RedisSessionStore(
        client=redis_client,
        ttl_seconds=config.session_ttl_seconds,
        touch_after_seconds=config.session_touch_after_seconds,
        operation_timeout_seconds=config.store_operation_timeout_seconds,
    )
