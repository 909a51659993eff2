# session_gateway/identity/sqlite_identity_provider.py
import asyncio
import logging
import sqlite3
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from ..errors import IdentityProviderUnavailable, RegistrationRejected
from ..storage.sqlite_base import close_sqlite_db_connection, open_sqlite_db_connection
from .models import Principal, UserAccount
from .password_hasher import PasswordHasherProtocol, ScryptPasswordHasher
from .storage_interfaces import AbstractIdentityProvider

logger = logging.getLogger(__name__)


class SQLiteIdentityProvider(AbstractIdentityProvider):
    """SQLite implementation of the identity provider.

    Queries and password hashing are blocking, so every call runs in a worker
    thread and is bounded by the configured timeout.
    """

    def __init__(
        self,
        db_path: str,
        password_hasher: Optional[PasswordHasherProtocol] = None,
        timeout_seconds: float = 5.0,
    ):
        self.db_path = db_path
        self.password_hasher = password_hasher or ScryptPasswordHasher()
        self.timeout_seconds = timeout_seconds
        self._conn: Optional[sqlite3.Connection] = None
        self._lock = threading.Lock()

    async def _run(self, operation: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.wait_for(asyncio.to_thread(func, *args), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.error(f"Identity provider '{operation}' timed out after {self.timeout_seconds}s")
            raise IdentityProviderUnavailable() from e
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as e:
            logger.error(f"SQLite error during identity provider '{operation}': {e}", exc_info=True)
            raise IdentityProviderUnavailable() from e

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise sqlite3.OperationalError("Identity provider is not initialized.")
        return self._conn

    async def initialize(self) -> None:
        self._conn = await self._run("initialize", open_sqlite_db_connection, self.db_path)
        logger.info("SQLiteIdentityProvider initialized.")

    async def teardown(self) -> None:
        if self._conn is not None:
            close_sqlite_db_connection(self._conn)
            self._conn = None
        logger.info("SQLiteIdentityProvider teardown complete.")

    def _row_to_account(self, row: Optional[sqlite3.Row]) -> Optional[UserAccount]:
        if not row:
            return None
        return UserAccount(
            user_id=row["user_id"],
            email=row["email"],
            display_name=row["display_name"],
            role=row["role"],
            password_hash=row["password_hash"],
            created_at=row["created_at"],
        )

    def _verify_credentials_sync(self, email: str, password: str) -> Optional[Principal]:
        with self._lock:
            cursor = self._connection().cursor()
            cursor.execute("SELECT * FROM gateway_users WHERE email = ?", (email,))
            account = self._row_to_account(cursor.fetchone())

        if account is None:
            # Keep the timing of unknown emails close to that of wrong passwords
            self.password_hasher.dummy_verify(password)
            return None
        if not self.password_hasher.verify_password(password, account.password_hash):
            return None
        return account.to_principal()

    def _insert_account_sync(self, account: UserAccount) -> None:
        with self._lock:
            conn = self._connection()
            try:
                conn.execute(
                    '''
                    INSERT INTO gateway_users (user_id, email, display_name, role, password_hash, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ''',
                    (
                        account.user_id,
                        account.email,
                        account.display_name,
                        account.role,
                        account.password_hash,
                        account.created_at,
                    ),
                )
                conn.commit()
            except sqlite3.Error:
                conn.rollback()
                raise

    def _register_user_sync(self, email: str, password: str, display_name: str, role: str) -> Principal:
        account = UserAccount(
            user_id=uuid.uuid4().hex,
            email=email,
            display_name=display_name,
            role=role,
            password_hash=self.password_hasher.hash_password(password),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._insert_account_sync(account)
        return account.to_principal()

    async def verify_credentials(self, email: str, password: str) -> Optional[Principal]:
        return await self._run("verify_credentials", self._verify_credentials_sync, email.strip().lower(), password)

    async def register_user(self, email: str, password: str, display_name: str, role: str = "user") -> Principal:
        normalized_email = email.strip().lower()
        try:
            principal = await self._run(
                "register_user", self._register_user_sync, normalized_email, password, display_name.strip(), role
            )
        except sqlite3.IntegrityError as e:
            logger.warning("Registration rejected: email already in use.")
            raise RegistrationRejected() from e
        logger.info(f"Registered user '{principal.user_id}' with role '{role}'.")
        return principal
