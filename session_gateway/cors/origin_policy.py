# session_gateway/cors/origin_policy.py
import logging
import time
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..config import GatewayConfig

logger = logging.getLogger(__name__)


class OriginDecision(BaseModel):
    """Outcome of evaluating a request's Origin header."""

    model_config = ConfigDict(frozen=True)

    allow: bool
    allow_credentials: bool = False
    # Value for Access-Control-Allow-Origin; None when no CORS header is due
    allow_origin: Optional[str] = None

    def response_headers(self) -> List[Tuple[bytes, bytes]]:
        """CORS headers to attach to a non-preflight response."""
        if not self.allow or self.allow_origin is None:
            return []
        headers = [(b"access-control-allow-origin", self.allow_origin.encode("latin-1"))]
        if self.allow_credentials:
            headers.append((b"access-control-allow-credentials", b"true"))
        if self.allow_origin != "*":
            headers.append((b"vary", b"Origin"))
        return headers


class OriginPolicy:
    """Decides whether a declared origin may receive a cross-origin response.

    Matching is exact and case-sensitive on scheme+host+port. There is no
    wildcard or subdomain matching, and an empty allow-list denies every
    cross-origin request.
    """

    def __init__(self, config: GatewayConfig):
        self._allowed = frozenset(config.allowed_origins)
        self._allow_all = config.allow_all_origins
        self._methods = ",".join(config.cors_allowed_methods)
        self._headers = ",".join(config.cors_allowed_headers)
        self._max_age = str(config.cors_preflight_max_age_seconds)
        logger.info(
            f"OriginPolicy initialized with {len(self._allowed)} allowed origin(s). "
            f"allow_all_origins={self._allow_all}"
        )

    def decide(self, request_origin: Optional[str]) -> OriginDecision:
        # No Origin header: same-origin navigation or server-to-server call
        if request_origin is None:
            return OriginDecision(allow=True, allow_credentials=True)
        if request_origin in self._allowed:
            return OriginDecision(allow=True, allow_credentials=True, allow_origin=request_origin)
        if self._allow_all:
            return OriginDecision(allow=True, allow_credentials=False, allow_origin="*")
        return OriginDecision(allow=False)

    def preflight_headers(self, decision: OriginDecision) -> List[Tuple[bytes, bytes]]:
        """Headers for a short-circuited OPTIONS preflight response."""
        headers = decision.response_headers()
        headers.extend([
            (b"access-control-allow-methods", self._methods.encode("latin-1")),
            (b"access-control-allow-headers", self._headers.encode("latin-1")),
            (b"access-control-max-age", self._max_age.encode("latin-1")),
        ])
        return headers


class RejectedOriginLog:
    """Logs each rejected origin at most once per window.

    A browser retrying a blocked request (or a misconfigured client in a loop)
    would otherwise flood the log with identical lines.
    """

    MAX_TRACKED_ORIGINS = 1024

    def __init__(self, window_seconds: float = 60.0):
        self.window_seconds = window_seconds
        self._last_logged: Dict[str, float] = {}
        self._suppressed: Dict[str, int] = {}

    def report(self, origin: str, path: str = "") -> bool:
        """Record a rejection. Returns True if a log line was emitted."""
        now = time.monotonic()
        last = self._last_logged.get(origin)
        if last is not None and now - last < self.window_seconds:
            self._suppressed[origin] = self._suppressed.get(origin, 0) + 1
            return False

        if len(self._last_logged) >= self.MAX_TRACKED_ORIGINS and origin not in self._last_logged:
            self._last_logged.clear()
            self._suppressed.clear()

        suppressed = self._suppressed.pop(origin, 0)
        self._last_logged[origin] = now
        if suppressed:
            logger.warning(
                f"CORS blocked origin: {origin} (path '{path}'); "
                f"{suppressed} further rejection(s) suppressed in the last window"
            )
        else:
            logger.warning(f"CORS blocked origin: {origin} (path '{path}')")
        return True
