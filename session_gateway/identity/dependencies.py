# session_gateway/identity/dependencies.py
import logging
from typing import Optional

from fastapi import Request

from ..errors import AuthenticationRequired, SessionExpired
from ..sessions.session_manager import RequestSession
from .models import Principal
from .resolver import AnonymousReason, IdentityResolver
from .storage_interfaces import AbstractIdentityProvider

logger = logging.getLogger(__name__)


def get_identity_resolver(request: Request) -> IdentityResolver:
    """Dependency provider for the application's identity resolver."""
    return request.app.state.identity_resolver


def get_identity_provider(request: Request) -> AbstractIdentityProvider:
    return request.app.state.identity_provider


def get_request_session(request: Request) -> RequestSession:
    """The session view loaded by the gateway middleware for this request."""
    request_session = getattr(request.state, "request_session", None)
    if request_session is None:
        raise RuntimeError("No request session on request.state; is GatewayMiddleware installed?")
    return request_session


async def get_current_principal(request: Request) -> Optional[Principal]:
    return getattr(request.state, "principal", None)


async def require_principal(request: Request) -> Principal:
    """
    Resolves the authenticated principal or rejects the request.

    A caller whose cookie points at a session that no longer exists gets
    SessionExpired, so clients can tell "sign in again" from "never signed in".
    """
    principal = getattr(request.state, "principal", None)
    if principal is not None:
        return principal

    if getattr(request.state, "anonymous_reason", None) is AnonymousReason.SESSION_EXPIRED:
        logger.info(f"Rejected request to {request.url.path}: session expired.")
        raise SessionExpired()
    logger.info(f"Rejected anonymous request to {request.url.path}.")
    raise AuthenticationRequired()
