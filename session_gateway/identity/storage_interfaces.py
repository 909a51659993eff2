# session_gateway/identity/storage_interfaces.py
from abc import ABC, abstractmethod
from typing import Optional

from .models import Principal


class AbstractIdentityProvider(ABC):
    """
    Abstract base class for the credential backend behind the identity resolver.

    Implementations raise IdentityProviderUnavailable when the backend fails
    or times out, and never report such failures as bad credentials.
    """

    @abstractmethod
    async def verify_credentials(self, email: str, password: str) -> Optional[Principal]:
        """Return the matching principal, or None when the credentials do not match."""
        pass

    @abstractmethod
    async def register_user(self, email: str, password: str, display_name: str, role: str = "user") -> Principal:
        """Create an account. Raises RegistrationRejected if the email is taken."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        pass

    @abstractmethod
    async def teardown(self) -> None:
        pass
