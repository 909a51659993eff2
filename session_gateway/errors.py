# session_gateway/errors.py
from typing import Dict, Optional

from fastapi import HTTPException, status


class ConfigurationError(ValueError):
    """Raised at startup when the gateway configuration is unsafe or inconsistent."""


class StoreError(Exception):
    """Transient failure of a Session Store operation (unreachable, timed out, corrupt).

    Only the first characters of the session id are kept so log lines can be
    correlated without exposing a usable identifier.
    """

    def __init__(self, operation: str, session_id: Optional[str] = None, reason: str = "store unavailable"):
        self.operation = operation
        self.session_id_prefix = session_id[:8] if session_id else None
        self.reason = reason
        super().__init__(f"Session store '{operation}' failed (session {self.session_id_prefix}): {reason}")


class GatewayError(HTTPException):
    """Base class for errors surfaced to clients by the gateway.

    The detail body follows the same shape everywhere:
    {"error": <code>, "error_description": <message>}.
    """

    def __init__(
        self,
        status_code: int,
        error: str,
        error_description: Optional[str] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error = error
        self.error_description = error_description

        detail = {"error": error}
        if error_description:
            detail["error_description"] = error_description

        super().__init__(status_code=status_code, detail=detail, headers=headers)


class OriginRejected(GatewayError):
    """Cross-origin request from an origin that is not on the allow-list."""

    def __init__(self, origin: str):
        self.origin = origin
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error="origin_rejected",
            error_description="Not allowed by CORS.",
        )


class SessionUnavailable(GatewayError):
    """The session store could not be reached; the request must not continue anonymously."""

    def __init__(self, error_description: str = "Session storage is temporarily unavailable.", retry_after: int = 5):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="session_unavailable",
            error_description=error_description,
            headers={"Retry-After": str(retry_after)},
        )


class InvalidCredentials(GatewayError):
    """Login input did not match an account. The message never says which factor was wrong."""

    def __init__(self):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error="invalid_credentials",
            error_description="Invalid email or password.",
        )


class IdentityProviderUnavailable(GatewayError):
    """The credential backend failed or timed out. Callers may retry with backoff."""

    def __init__(self, error_description: str = "Authentication service is temporarily unavailable.", retry_after: int = 5):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error="identity_provider_unavailable",
            error_description=error_description,
            headers={"Retry-After": str(retry_after)},
        )


class AuthenticationRequired(GatewayError):
    """Protected route reached by an anonymous caller."""

    def __init__(self, error: str = "authentication_required", error_description: str = "Authentication required."):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error=error,
            error_description=error_description,
        )


class SessionExpired(AuthenticationRequired):
    """The caller presented a session cookie whose session no longer exists."""

    def __init__(self):
        super().__init__(error="session_expired", error_description="Session expired. Please sign in again.")


class PayloadTooLarge(GatewayError):
    def __init__(self, limit: int):
        super().__init__(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            error="payload_too_large",
            error_description=f"Request body exceeds {limit} bytes.",
        )


class RegistrationRejected(GatewayError):
    def __init__(self, error_description: str = "An account with this email already exists."):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error="registration_rejected",
            error_description=error_description,
        )
