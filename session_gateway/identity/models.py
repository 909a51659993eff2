# session_gateway/identity/models.py
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Principal(BaseModel):
    """The authenticated identity attached to a request."""
    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str
    display_name: str
    role: str = "user"


class LoginRequest(BaseModel):
    # Untyped so any malformed field reaches the resolver and fails as invalid credentials
    email: Any = None
    password: Any = None


class RegistrationRequest(BaseModel):
    """Request model for creating a local account."""
    email: str = Field(
        max_length=254,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="Login email; stored lower-cased.",
    )
    password: str = Field(min_length=8, max_length=1024)
    display_name: str = Field(min_length=1, max_length=100)


class PrincipalResponse(BaseModel):
    principal: Principal
    message: str = "Authenticated."


class UserAccount(BaseModel):
    """Internal model for a stored account row."""
    user_id: str
    email: str
    display_name: str
    role: str
    password_hash: str  # never the plain password
    created_at: str  # ISO format datetime string

    def to_principal(self) -> Principal:
        return Principal(
            user_id=self.user_id,
            email=self.email,
            display_name=self.display_name,
            role=self.role,
        )
