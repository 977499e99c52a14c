"""
Sign-in tests: phone normalization, challenge/verify and session role caching.
"""

import fakeredis
import fakeredis.aioredis
import pytest

from shared.config.redis import SessionStore
from shared.errors import ChallengeExpired, InvalidCode, InvalidPhoneNumber, SessionExpired, StoreUnavailable
from shared.models.subscriber import Role, Subscriber
from shared.services.auth_service import AuthService, end_session, normalize_phone, resolve_session


class TestNormalizePhone:

    @pytest.mark.parametrize("raw,expected", [
        ("9876543210", "+919876543210"),
        ("98765 43210", "+919876543210"),
        ("+919876543210", "+919876543210"),
        ("+14155550123", "+14155550123"),
    ])
    def test_accepted(self, raw, expected):
        assert normalize_phone(raw, "+91") == expected

    @pytest.mark.parametrize("raw", ["", "12345", "98765432101", "abcdefghij", "+91-98765"])
    def test_rejected(self, raw):
        with pytest.raises(InvalidPhoneNumber):
            normalize_phone(raw, "+91")


@pytest.fixture
def auth(session, identity_provider, session_store):
    return AuthService(session, identity_provider, session_store)


async def sign_in(auth, phone="9876543210"):
    handle = await auth.request_challenge(phone)
    return await auth.verify(handle, "123456")


class TestSignIn:

    async def test_invalid_phone_never_reaches_provider(self, auth, identity_provider):
        with pytest.raises(InvalidPhoneNumber):
            await auth.request_challenge("12345")
        assert identity_provider.sent_to == []

    async def test_first_sign_in_creates_subscriber(self, auth, session):
        session_info = await sign_in(auth)

        subscriber = await session.get(Subscriber, session_info.subscriber_id)
        assert subscriber.phone_number == "+919876543210"
        assert subscriber.role == Role.SUBSCRIBER.value
        assert session_info.role == Role.SUBSCRIBER.value

    async def test_second_sign_in_reuses_subscriber(self, auth):
        first = await sign_in(auth)
        second = await sign_in(auth)

        assert first.subscriber_id == second.subscriber_id
        assert first.token != second.token

    async def test_wrong_code(self, auth):
        handle = await auth.request_challenge("9876543210")
        with pytest.raises(InvalidCode):
            await auth.verify(handle, "000000")

    async def test_expired_challenge(self, auth, identity_provider):
        handle = await auth.request_challenge("9876543210")
        identity_provider.expire(handle)
        with pytest.raises(ChallengeExpired):
            await auth.verify(handle, "123456")


class TestSessions:

    async def test_role_fixed_for_session_lifetime(self, auth, session, session_store):
        before = await sign_in(auth)

        subscriber = await session.get(Subscriber, before.subscriber_id)
        subscriber.role = Role.ADMIN.value
        await session.commit()

        assert (await resolve_session(session_store, before.token)).role == Role.SUBSCRIBER.value
        after = await sign_in(auth)
        assert after.is_admin
        assert (await resolve_session(session_store, after.token)).is_admin

    async def test_end_session(self, auth, session_store):
        session_info = await sign_in(auth)
        await end_session(session_store, session_info.token)

        with pytest.raises(SessionExpired):
            await resolve_session(session_store, session_info.token)

    async def test_unknown_token(self, session_store):
        with pytest.raises(SessionExpired):
            await resolve_session(session_store, "never-issued")


class TestSessionCacheOutage:

    @pytest.fixture
    def unreachable_store(self):
        server = fakeredis.FakeServer()
        server.connected = False
        return SessionStore(fakeredis.aioredis.FakeRedis(server=server, decode_responses=True), ttl=60)

    async def test_unreachable_cache_is_not_reported_as_expiry(self, unreachable_store):
        with pytest.raises(StoreUnavailable) as exc_info:
            await resolve_session(unreachable_store, "some-token")
        assert not isinstance(exc_info.value, SessionExpired)
        assert exc_info.value.operation == "get_session"

    async def test_every_operation_reports_outage(self, unreachable_store):
        with pytest.raises(StoreUnavailable):
            await unreachable_store.set_session("t", {"subscriber_id": "s"})
        with pytest.raises(StoreUnavailable):
            await unreachable_store.delete_session("t")

    async def test_unconnected_store(self):
        store = SessionStore(client=None)
        store.redis = None
        with pytest.raises(StoreUnavailable):
            await store.get_session("t")
        with pytest.raises(StoreUnavailable):
            await store.set_session("t", {})
