# session_gateway/sessions/cookies.py
import binascii
import logging
from base64 import urlsafe_b64decode, urlsafe_b64encode
from http.cookies import SimpleCookie
from typing import Literal, Optional, Sequence

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from pydantic import BaseModel, ConfigDict

from ..config import GatewayConfig

logger = logging.getLogger(__name__)


class SessionCookieSigner:
    """Signs session ids with HMAC-SHA256 so forged cookies are rejected before any store lookup.

    The first secret signs; every secret verifies, which allows rotating
    the signing key without logging everyone out.
    """

    def __init__(self, secrets: Sequence[str]):
        if not secrets:
            raise ValueError("SessionCookieSigner requires at least one secret.")
        self._keys = [secret.encode("utf-8") for secret in secrets]

    @staticmethod
    def _mac(key: bytes, session_id: str) -> hmac.HMAC:
        mac = hmac.HMAC(key, hashes.SHA256())
        mac.update(session_id.encode("utf-8"))
        return mac

    def sign(self, session_id: str) -> str:
        signature = self._mac(self._keys[0], session_id).finalize()
        return f"{session_id}.{urlsafe_b64encode(signature).rstrip(b'=').decode('ascii')}"

    def unsign(self, cookie_value: str) -> Optional[str]:
        """Return the session id if the signature verifies, else None."""
        session_id, sep, encoded_signature = cookie_value.rpartition(".")
        if not sep or not session_id or not encoded_signature:
            return None
        try:
            padding = "=" * (-len(encoded_signature) % 4)
            signature = urlsafe_b64decode(encoded_signature + padding)
        except (binascii.Error, ValueError):
            return None

        for key in self._keys:
            try:
                # Constant-time comparison
                self._mac(key, session_id).verify(signature)
                return session_id
            except InvalidSignature:
                continue
        return None


class CookieDirective(BaseModel):
    """What the response must do with the session cookie."""

    model_config = ConfigDict(frozen=True)

    action: Literal["set", "clear"]
    value: str = ""

    def header_value(self, config: GatewayConfig) -> str:
        cookie: SimpleCookie = SimpleCookie()
        name = config.session_cookie_name
        cookie[name] = self.value
        morsel = cookie[name]
        morsel["path"] = "/"
        morsel["httponly"] = True
        morsel["samesite"] = config.cookie_same_site
        if config.cookie_secure:
            morsel["secure"] = True
        if self.action == "set":
            morsel["max-age"] = config.cookie_max_age_seconds
        else:
            morsel["max-age"] = 0
            morsel["expires"] = "Thu, 01 Jan 1970 00:00:00 GMT"
        return cookie.output(header="").strip()
