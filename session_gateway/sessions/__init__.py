# session_gateway/sessions/__init__.py
"""
Server-side session management for the gateway.

This module provides the session record model, the storage abstraction
with its Redis and in-memory implementations, cookie signing, and the
per-request session manager.
"""

from .session_data import SessionRecord
from .session_store import AbstractSessionStore, RedisSessionStore, StoreConnectionState
from .memory_store import InMemorySessionStore
from .cookies import CookieDirective, SessionCookieSigner
from .session_manager import RequestSession, SessionManager
from .storage import create_session_store

__all__ = [
    "SessionRecord",
    "AbstractSessionStore",
    "RedisSessionStore",
    "StoreConnectionState",
    "InMemorySessionStore",
    "CookieDirective",
    "SessionCookieSigner",
    "RequestSession",
    "SessionManager",
    "create_session_store",
]
