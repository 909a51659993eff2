# session_gateway/identity/resolver.py
import logging
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError
from starlette.datastructures import State

from ..errors import InvalidCredentials
from ..sessions.session_manager import RequestSession, SessionManager
from .models import Principal
from .storage_interfaces import AbstractIdentityProvider

logger = logging.getLogger(__name__)

PRINCIPAL_SESSION_KEY = "principal"
MAX_EMAIL_LENGTH = 254
MAX_PASSWORD_LENGTH = 1024


class AuthState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATED = "authenticated"


class AnonymousReason(str, Enum):
    NO_SESSION = "no_session"
    SESSION_EXPIRED = "session_expired"


class IdentityResolver:
    """
    Turns credentials into a principal and keeps it in the session.

    The principal is stored in the session payload under PRINCIPAL_SESSION_KEY
    and exposed per request on request.state.principal.
    """

    def __init__(self, session_manager: SessionManager, identity_provider: AbstractIdentityProvider):
        self.session_manager = session_manager
        self.identity_provider = identity_provider

    async def authenticate(self, email: Any, password: Any) -> Principal:
        """
        Check credentials against the identity provider.

        Raises InvalidCredentials for any mismatch or malformed input, and lets
        IdentityProviderUnavailable through untouched so callers can retry.
        """
        if not isinstance(email, str) or not isinstance(password, str):
            raise InvalidCredentials()
        email = email.strip().lower()
        if not email or not password or len(email) > MAX_EMAIL_LENGTH or len(password) > MAX_PASSWORD_LENGTH:
            raise InvalidCredentials()

        principal = await self.identity_provider.verify_credentials(email, password)
        if principal is None:
            logger.warning("authenticate: Credentials rejected.")
            raise InvalidCredentials()

        logger.info(f"authenticate: User '{principal.user_id}' authenticated.")
        return principal

    def serialize(self, principal: Principal) -> Dict[str, Any]:
        return principal.model_dump()

    def deserialize(self, fragment: Any) -> Optional[Principal]:
        if fragment is None:
            return None
        try:
            return Principal.model_validate(fragment)
        except ValidationError as e:
            logger.warning(f"deserialize: Malformed principal in session; treating request as anonymous. {e.error_count()} error(s).")
            return None

    def attach(self, state: State, request_session: RequestSession) -> AuthState:
        payload = request_session.payload
        principal = self.deserialize(payload.get(PRINCIPAL_SESSION_KEY)) if payload is not None else None

        state.principal = principal
        if principal is not None:
            state.auth_state = AuthState.AUTHENTICATED
            state.anonymous_reason = None
        else:
            state.auth_state = AuthState.ANONYMOUS
            state.anonymous_reason = (
                AnonymousReason.SESSION_EXPIRED if request_session.expired else AnonymousReason.NO_SESSION
            )
        return state.auth_state

    def login(self, request_session: RequestSession, principal: Principal) -> None:
        # A fresh id on every login defeats session fixation
        record = self.session_manager.regenerate(request_session)
        record.payload[PRINCIPAL_SESSION_KEY] = self.serialize(principal)
        logger.info(f"login: User '{principal.user_id}' signed in.")

    def logout(self, request_session: RequestSession) -> None:
        payload = request_session.payload or {}
        principal = self.deserialize(payload.get(PRINCIPAL_SESSION_KEY))
        self.session_manager.destroy(request_session)
        if principal is not None:
            logger.info(f"logout: User '{principal.user_id}' signed out.")
