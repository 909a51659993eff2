# session_gateway/identity/password_hasher.py
import binascii
import secrets
from abc import ABC, abstractmethod
from base64 import b64decode, b64encode
from typing import Optional

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt


class PasswordHasherProtocol(ABC):
    """Protocol defining the interface for password hashing operations."""

    @abstractmethod
    def hash_password(self, password: str) -> str:
        """Return a self-describing hash string suitable for storage."""
        pass

    @abstractmethod
    def verify_password(self, password: str, encoded: str) -> bool:
        """Check a password against a stored hash."""
        pass

    @abstractmethod
    def dummy_verify(self, password: str) -> None:
        """Spend the same work as verify_password when there is no account to check."""
        pass


class ScryptPasswordHasher(PasswordHasherProtocol):
    """
    scrypt password hashing from the cryptography package.

    Hashes are stored as ``scrypt$<n>$<r>$<p>$<salt b64>$<key b64>`` so the
    cost parameters can be raised later without invalidating stored hashes.
    """

    ALGORITHM = "scrypt"

    def __init__(self, n: int = 2 ** 14, r: int = 8, p: int = 1, key_length: int = 32, salt_length: int = 16):
        self.n = n
        self.r = r
        self.p = p
        self.key_length = key_length
        self.salt_length = salt_length
        self._dummy_hash: Optional[str] = None

    def hash_password(self, password: str) -> str:
        salt = secrets.token_bytes(self.salt_length)
        kdf = Scrypt(salt=salt, length=self.key_length, n=self.n, r=self.r, p=self.p)
        key = kdf.derive(password.encode("utf-8"))
        return "$".join([
            self.ALGORITHM,
            str(self.n),
            str(self.r),
            str(self.p),
            b64encode(salt).decode("ascii"),
            b64encode(key).decode("ascii"),
        ])

    def verify_password(self, password: str, encoded: str) -> bool:
        try:
            algorithm, n, r, p, salt_b64, key_b64 = encoded.split("$")
            if algorithm != self.ALGORITHM:
                return False
            salt = b64decode(salt_b64)
            expected = b64decode(key_b64)
            kdf = Scrypt(salt=salt, length=len(expected), n=int(n), r=int(r), p=int(p))
        except (ValueError, binascii.Error):
            return False

        try:
            kdf.verify(password.encode("utf-8"), expected)
        except InvalidKey:
            return False
        return True

    def dummy_verify(self, password: str) -> None:
        if self._dummy_hash is None:
            self._dummy_hash = self.hash_password(secrets.token_urlsafe(16))
        self.verify_password(password, self._dummy_hash)
