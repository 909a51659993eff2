# session_gateway/sessions/session_manager.py
import copy
import logging
import secrets
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..config import GatewayConfig
from ..errors import SessionUnavailable, StoreError
from .cookies import CookieDirective, SessionCookieSigner
from .session_data import SessionRecord, utcnow
from .session_store import AbstractSessionStore

logger = logging.getLogger(__name__)

SESSION_ID_BYTES = 32


class RequestSession:
    """Per-request view of a session, owned by exactly one request task."""

    def __init__(self, record: Optional[SessionRecord], cookie_presented: bool):
        self.record = record
        self.cookie_presented = cookie_presented
        self.is_new = False
        self.destroyed = False
        self.pending_deletions: List[str] = []
        self._fingerprint: Optional[str] = record.payload_fingerprint() if record else None

    @property
    def id(self) -> Optional[str]:
        return self.record.id if self.record else None

    @property
    def payload(self) -> Optional[Dict[str, Any]]:
        return self.record.payload if self.record else None

    @property
    def expired(self) -> bool:
        """A cookie was sent but no live session backs it."""
        return self.cookie_presented and self.record is None and not self.is_new

    def is_modified(self) -> bool:
        if self.record is None:
            return False
        if self.is_new:
            return True
        return self.record.payload_fingerprint() != self._fingerprint

    def mark_persisted(self) -> None:
        self.is_new = False
        self._fingerprint = self.record.payload_fingerprint() if self.record else None


class SessionManager:
    """
    Mediates between the request pipeline and the session store.

    Sessions are created lazily, persisted only when their payload changed,
    and touched (debounced by the store) on read-only requests.
    """

    def __init__(self, store: AbstractSessionStore, config: GatewayConfig, signer: SessionCookieSigner):
        if not isinstance(store, AbstractSessionStore):
            raise TypeError("SessionManager requires an instance of AbstractSessionStore.")
        self.store = store
        self.config = config
        self.signer = signer
        logger.info(f"SessionManager initialized with store: {type(store).__name__}")

    def _generate_session_id(self) -> str:
        return secrets.token_urlsafe(SESSION_ID_BYTES)

    async def resolve(self, cookie_value: Optional[str]) -> Optional[SessionRecord]:
        """Map a cookie value to a live session record. Never creates one."""
        if not cookie_value:
            return None

        session_id = self.signer.unsign(cookie_value)
        if session_id is None:
            logger.warning("resolve: Session cookie failed signature verification; treating as no session.")
            return None

        try:
            record = await self.store.get(session_id)
        except StoreError as e:
            logger.error(f"resolve: {e}")
            raise SessionUnavailable() from e

        if record is None:
            logger.debug(f"resolve: No live session for id prefix '{session_id[:8]}'")
        return record

    async def load(self, cookie_value: Optional[str]) -> RequestSession:
        record = await self.resolve(cookie_value)
        return RequestSession(record, cookie_presented=bool(cookie_value))

    def create(self, request_session: RequestSession) -> SessionRecord:
        """Ensure the request has a session. Nothing is written until commit."""
        if request_session.record is not None:
            return request_session.record

        record = SessionRecord.new(self._generate_session_id(), self.config.session_ttl_seconds)
        request_session.record = record
        request_session.is_new = True
        request_session.destroyed = False
        logger.debug(f"create: New session (id prefix '{record.id[:8]}')")
        return record

    def regenerate(self, request_session: RequestSession) -> SessionRecord:
        """Move the session to a fresh id, keeping its payload. Used at privilege changes."""
        old = request_session.record
        if old is None:
            return self.create(request_session)

        if not request_session.is_new:
            request_session.pending_deletions.append(old.id)

        record = SessionRecord.new(self._generate_session_id(), self.config.session_ttl_seconds)
        record.payload = copy.deepcopy(old.payload)
        request_session.record = record
        request_session.is_new = True
        logger.info(f"regenerate: Session id prefix '{old.id[:8]}' replaced by '{record.id[:8]}'")
        return record

    def destroy(self, request_session: RequestSession) -> None:
        record = request_session.record
        if record is not None and not request_session.is_new:
            request_session.pending_deletions.append(record.id)
        request_session.record = None
        request_session.is_new = False
        request_session.destroyed = True

    async def commit(self, request_session: RequestSession) -> Optional[CookieDirective]:
        """
        Persist whatever the request did to its session.

        Returns the cookie directive the response must carry, or None when
        the cookie is left untouched.
        """
        try:
            return await self._commit(request_session)
        except StoreError as e:
            logger.error(f"commit: {e}")
            raise SessionUnavailable() from e

    async def _commit(self, request_session: RequestSession) -> Optional[CookieDirective]:
        while request_session.pending_deletions:
            await self.store.delete(request_session.pending_deletions[0])
            request_session.pending_deletions.pop(0)

        record = request_session.record
        if request_session.destroyed and record is None:
            return CookieDirective(action="clear")

        if record is None:
            if request_session.cookie_presented:
                # Expired, missing or forged
                return CookieDirective(action="clear")
            return None

        if request_session.is_new and not record.payload:
            # Uninitialized sessions are not saved
            return CookieDirective(action="clear") if request_session.cookie_presented else None

        if request_session.is_modified():
            now = utcnow()
            record.last_accessed_at = now
            record.expires_at = now + timedelta(seconds=self.config.session_ttl_seconds)
            await self.store.put(record)
            request_session.mark_persisted()
            return CookieDirective(action="set", value=self.signer.sign(record.id))

        await self.store.touch(record.id)
        return None
