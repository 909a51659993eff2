"""IdentityResolver, the SQLite identity provider and password hashing."""

from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from starlette.datastructures import State

from session_gateway.errors import IdentityProviderUnavailable, InvalidCredentials, RegistrationRejected
from session_gateway.identity.models import Principal
from session_gateway.identity.resolver import (
    PRINCIPAL_SESSION_KEY,
    AnonymousReason,
    AuthState,
    IdentityResolver,
)
from session_gateway.identity.sqlite_identity_provider import SQLiteIdentityProvider
from session_gateway.sessions.cookies import SessionCookieSigner
from session_gateway.sessions.session_manager import SessionManager

from .conftest import USER_EMAIL, USER_PASSWORD


@pytest_asyncio.fixture
async def provider(identity_provider):
    await identity_provider.initialize()
    yield identity_provider
    await identity_provider.teardown()


@pytest.fixture
def manager(session_store, config):
    return SessionManager(store=session_store, config=config, signer=SessionCookieSigner(config.session_secrets))


@pytest.fixture
def resolver(manager, provider):
    return IdentityResolver(session_manager=manager, identity_provider=provider)


@pytest.fixture
def principal():
    return Principal(user_id="u-1", email=USER_EMAIL, display_name="Alice")


class TestScryptPasswordHasher:

    def test_hash_round_trip(self, fast_hasher):
        encoded = fast_hasher.hash_password("s3cret-pass")
        assert encoded.startswith("scrypt$16$1$1$")
        assert fast_hasher.verify_password("s3cret-pass", encoded) is True
        assert fast_hasher.verify_password("wrong-pass", encoded) is False

    def test_hashes_are_salted(self, fast_hasher):
        assert fast_hasher.hash_password("same") != fast_hasher.hash_password("same")

    @pytest.mark.parametrize("encoded", ["", "plain", "bcrypt$1$2$3$4$5", "scrypt$notanint$8$1$AAAA$AAAA"])
    def test_unreadable_hash_never_verifies(self, fast_hasher, encoded):
        assert fast_hasher.verify_password("anything", encoded) is False


class TestSQLiteIdentityProvider:

    @pytest.mark.asyncio
    async def test_register_then_verify(self, provider):
        created = await provider.register_user("Alice@Example.com ", USER_PASSWORD, "Alice")
        assert created.email == USER_EMAIL
        assert created.role == "user"

        verified = await provider.verify_credentials(USER_EMAIL, USER_PASSWORD)
        assert verified == created

    @pytest.mark.asyncio
    async def test_wrong_password_and_unknown_email(self, provider):
        await provider.register_user(USER_EMAIL, USER_PASSWORD, "Alice")
        assert await provider.verify_credentials(USER_EMAIL, "not-the-password") is None
        assert await provider.verify_credentials("nobody@example.com", USER_PASSWORD) is None

    @pytest.mark.asyncio
    async def test_duplicate_email_is_rejected(self, provider):
        await provider.register_user(USER_EMAIL, USER_PASSWORD, "Alice")
        with pytest.raises(RegistrationRejected):
            await provider.register_user(USER_EMAIL.upper(), "another-password", "Alice Again")

    @pytest.mark.asyncio
    async def test_backend_failure_is_unavailable_not_invalid(self, tmp_path, fast_hasher):
        provider = SQLiteIdentityProvider(db_path=str(tmp_path / "never-opened.sqlite3"), password_hasher=fast_hasher)
        with pytest.raises(IdentityProviderUnavailable) as exc_info:
            await provider.verify_credentials(USER_EMAIL, USER_PASSWORD)
        assert exc_info.value.status_code == 503
        assert "Retry-After" in exc_info.value.headers


class TestAuthenticate:

    @pytest.mark.asyncio
    async def test_valid_credentials(self, resolver, provider):
        created = await provider.register_user(USER_EMAIL, USER_PASSWORD, "Alice")
        assert await resolver.authenticate("  ALICE@example.com", USER_PASSWORD) == created

    @pytest.mark.asyncio
    async def test_bad_credentials_share_one_message(self, resolver, provider):
        await provider.register_user(USER_EMAIL, USER_PASSWORD, "Alice")

        with pytest.raises(InvalidCredentials) as wrong_password:
            await resolver.authenticate(USER_EMAIL, "nope")
        with pytest.raises(InvalidCredentials) as unknown_user:
            await resolver.authenticate("ghost@example.com", USER_PASSWORD)
        assert wrong_password.value.detail == unknown_user.value.detail

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email,password", [
        ("", "pw"),
        (USER_EMAIL, ""),
        (None, None),
        (12345, "pw"),
        (USER_EMAIL, {"nested": "pw"}),
        ("a" * 300 + "@example.com", "pw"),
        (USER_EMAIL, "p" * 1025),
    ])
    async def test_missing_input_is_rejected_without_provider_call(self, manager, email, password):
        provider = MagicMock()
        provider.verify_credentials = AsyncMock()
        resolver = IdentityResolver(session_manager=manager, identity_provider=provider)

        with pytest.raises(InvalidCredentials):
            await resolver.authenticate(email, password)
        provider.verify_credentials.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_outage_propagates(self, manager):
        provider = MagicMock()
        provider.verify_credentials = AsyncMock(side_effect=IdentityProviderUnavailable())
        resolver = IdentityResolver(session_manager=manager, identity_provider=provider)

        with pytest.raises(IdentityProviderUnavailable):
            await resolver.authenticate(USER_EMAIL, USER_PASSWORD)


class TestSessionBinding:

    def test_serialize_deserialize(self, resolver, principal):
        assert resolver.deserialize(resolver.serialize(principal)) == principal

    @pytest.mark.parametrize("fragment", [None, "u-1", {"user_id": "u-1"}, ["not", "a", "dict"]])
    def test_malformed_fragment_is_anonymous(self, resolver, fragment):
        assert resolver.deserialize(fragment) is None

    @pytest.mark.asyncio
    async def test_attach_without_session(self, resolver, manager):
        state = State()
        request_session = await manager.load(None)

        assert resolver.attach(state, request_session) is AuthState.ANONYMOUS
        assert state.principal is None
        assert state.anonymous_reason is AnonymousReason.NO_SESSION

    @pytest.mark.asyncio
    async def test_attach_with_stale_cookie_reports_expiry(self, resolver, manager):
        state = State()
        request_session = await manager.load(manager.signer.sign("gone"))

        assert resolver.attach(state, request_session) is AuthState.ANONYMOUS
        assert state.anonymous_reason is AnonymousReason.SESSION_EXPIRED

    @pytest.mark.asyncio
    async def test_login_then_attach(self, resolver, manager, principal):
        request_session = await manager.load(None)
        resolver.login(request_session, principal)
        directive = await manager.commit(request_session)

        state = State()
        reloaded = await manager.load(directive.value)
        assert resolver.attach(state, reloaded) is AuthState.AUTHENTICATED
        assert state.principal == principal
        assert state.anonymous_reason is None

    @pytest.mark.asyncio
    async def test_login_regenerates_existing_session(self, resolver, manager, principal):
        anonymous = await manager.load(None)
        manager.create(anonymous).payload["cart"] = ["book"]
        cookie = (await manager.commit(anonymous)).value

        request_session = await manager.load(cookie)
        old_id = request_session.id
        resolver.login(request_session, principal)

        assert request_session.id != old_id
        assert old_id in request_session.pending_deletions
        assert request_session.payload["cart"] == ["book"]
        assert request_session.payload[PRINCIPAL_SESSION_KEY]["user_id"] == "u-1"

    @pytest.mark.asyncio
    async def test_logout_destroys_session(self, resolver, manager, principal):
        request_session = await manager.load(None)
        resolver.login(request_session, principal)
        cookie = (await manager.commit(request_session)).value

        signed_in = await manager.load(cookie)
        resolver.logout(signed_in)
        directive = await manager.commit(signed_in)

        assert directive.action == "clear"
        assert await manager.resolve(cookie) is None
