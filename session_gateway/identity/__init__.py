# session_gateway/identity/__init__.py
"""
Identity layer of the gateway.

Verifies credentials against the identity provider, stores the resulting
principal in the server-side session and exposes it on each request.
"""

# Core data models for principals and auth requests
from .models import (
    Principal,
    LoginRequest,
    RegistrationRequest,
    PrincipalResponse
)

# Password hashing protocol and scrypt implementation
from .password_hasher import PasswordHasherProtocol, ScryptPasswordHasher

# Credential backend abstraction and its SQLite implementation
from .storage_interfaces import AbstractIdentityProvider
from .sqlite_identity_provider import SQLiteIdentityProvider

from .resolver import (
    PRINCIPAL_SESSION_KEY,
    AuthState,
    AnonymousReason,
    IdentityResolver
)

# FastAPI router containing authentication endpoints
from .endpoints import auth_router
