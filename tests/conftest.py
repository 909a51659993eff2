"""
Shared pytest fixtures for the gateway test suite.

Fixture layout:
    settings_factory / config_factory: build validated configuration with overrides
    session_store: in-memory store that counts every operation
    identity_provider: SQLite provider on a temporary file, cheap scrypt cost
    gateway_app / client: the full application with its lifespan running,
                          driven through httpx's ASGI transport
"""

import os
from collections import Counter
from http.cookies import Morsel, SimpleCookie
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Keep developer .env files and shell variables out of the tests
os.environ.pop("REDIS_URL", None)
os.environ.pop("SESSION_SECRET", None)

from session_gateway.config import GatewayConfig
from session_gateway.errors import StoreError
from session_gateway.identity.password_hasher import ScryptPasswordHasher
from session_gateway.identity.sqlite_identity_provider import SQLiteIdentityProvider
from session_gateway.main import create_app
from session_gateway.sessions.memory_store import InMemorySessionStore
from session_gateway.settings import Settings

APP_ORIGIN = "https://app.example.com"
EVIL_ORIGIN = "https://evil.com"
COOKIE_NAME = "gateway.sid"
USER_EMAIL = "alice@example.com"
USER_PASSWORD = "correct horse battery"


class CountingInMemorySessionStore(InMemorySessionStore):
    """In-memory store recording every operation, with optional simulated outages."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls: Counter = Counter()
        self.touch_writes = 0
        self.fail_operations = set()

    def _record(self, operation: str, session_id: Optional[str] = None) -> None:
        self.calls[operation] += 1
        if operation in self.fail_operations:
            raise StoreError(operation, session_id, "simulated outage")

    @property
    def total_calls(self) -> int:
        return sum(self.calls.values())

    @property
    def writes(self) -> int:
        return self.calls["put"] + self.touch_writes

    def reset_counts(self) -> None:
        self.calls.clear()
        self.touch_writes = 0

    async def get(self, session_id):
        self._record("get", session_id)
        return await super().get(session_id)

    async def put(self, record):
        self._record("put", record.id)
        await super().put(record)

    async def delete(self, session_id):
        self._record("delete", session_id)
        await super().delete(session_id)

    async def touch(self, session_id):
        self._record("touch", session_id)
        written = await super().touch(session_id)
        if written:
            self.touch_writes += 1
        return written


def session_morsel(response, name: str = COOKIE_NAME) -> Optional[Morsel]:
    """The Set-Cookie morsel for the session cookie, or None if the response did not set it."""
    for header in response.headers.get_list("set-cookie"):
        cookie = SimpleCookie()
        cookie.load(header)
        if name in cookie:
            return cookie[name]
    return None


@pytest.fixture
def settings_factory(tmp_path):
    def factory(**overrides) -> Settings:
        values = dict(
            deployment_mode="development",
            allowed_origins=APP_ORIGIN,
            session_secret="test-signing-secret",
            session_store_backend="memory",
            redis_url=None,
            sqlite_db_path=str(tmp_path / "users.sqlite3"),
            log_level="WARNING",
        )
        values.update(overrides)
        return Settings(**values)
    return factory


@pytest.fixture
def config_factory(settings_factory):
    def factory(**overrides) -> GatewayConfig:
        return GatewayConfig.from_settings(settings_factory(**overrides))
    return factory


@pytest.fixture
def config(config_factory) -> GatewayConfig:
    return config_factory()


@pytest.fixture
def session_store(config) -> CountingInMemorySessionStore:
    return CountingInMemorySessionStore(
        ttl_seconds=config.session_ttl_seconds,
        touch_after_seconds=config.session_touch_after_seconds,
    )


@pytest.fixture
def fast_hasher() -> ScryptPasswordHasher:
    # Minimal scrypt cost; production uses the defaults
    return ScryptPasswordHasher(n=2 ** 4, r=1, p=1)


@pytest.fixture
def identity_provider(tmp_path, fast_hasher) -> SQLiteIdentityProvider:
    return SQLiteIdentityProvider(
        db_path=str(tmp_path / "users.sqlite3"),
        password_hasher=fast_hasher,
        timeout_seconds=5.0,
    )


@pytest.fixture
def app_settings(settings_factory) -> Settings:
    """Override in a test module to change the application configuration."""
    return settings_factory()


@pytest_asyncio.fixture
async def gateway_app(app_settings, session_store, identity_provider):
    app = create_app(settings=app_settings, store=session_store, identity_provider=identity_provider)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(gateway_app):
    transport = ASGITransport(app=gateway_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def registered_user(gateway_app, identity_provider):
    return await identity_provider.register_user(
        email=USER_EMAIL, password=USER_PASSWORD, display_name="Alice"
    )


@pytest_asyncio.fixture
async def signed_in_client(client, registered_user, session_store):
    response = await client.post(
        "/api/auth/login",
        json={"email": USER_EMAIL, "password": USER_PASSWORD},
        headers={"Origin": APP_ORIGIN},
    )
    assert response.status_code == 200
    session_store.reset_counts()
    return client
