# session_gateway/sessions/session_data.py
import json
from pydantic import BaseModel, Field
from typing import Dict, Any, Optional
from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionRecord(BaseModel):
    """
    A server-side session as persisted by a session store.

    The browser only ever holds a signed reference to `id`; everything else
    lives in the store.
    """

    id: str = Field(description="Opaque, unguessable session identifier.")
    payload: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=utcnow)
    last_accessed_at: datetime = Field(default_factory=utcnow)
    expires_at: datetime

    @classmethod
    def new(cls, session_id: str, ttl_seconds: int, now: Optional[datetime] = None) -> "SessionRecord":
        now = now or utcnow()
        return cls(
            id=session_id,
            created_at=now,
            last_accessed_at=now,
            expires_at=now + timedelta(seconds=ttl_seconds),
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utcnow()) >= self.expires_at

    def needs_touch(self, touch_after_seconds: int, now: Optional[datetime] = None) -> bool:
        """True once last_accessed_at is older than the debounce window."""
        return (now or utcnow()) - self.last_accessed_at >= timedelta(seconds=touch_after_seconds)

    def payload_fingerprint(self) -> str:
        """Canonical serialization of the payload, used to detect mutation during a request."""
        return json.dumps(self.payload, sort_keys=True, separators=(",", ":"), default=str)
