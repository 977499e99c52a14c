"""
Pytest Configuration and Shared Fixtures

In-memory record store, fake session cache and a scripted identity provider.
"""

import pytest
from datetime import datetime, timedelta

import fakeredis.aioredis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from shared.config.redis import SessionStore
from shared.errors import ChallengeExpired, InvalidCode
from shared.models import Role, Subscriber
from shared.models.base import Base as DeclarativeBase
from shared.services.auth_service import AuthSession, IdentityProvider


T0 = datetime(2024, 3, 1, 6, 0, 0)


def day(n: int) -> datetime:
    """T0 shifted by ``n`` days"""
    return T0 + timedelta(days=n)


# ============================================================================
# RECORD STORE
# ============================================================================

@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(DeclarativeBase.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


async def make_subscriber(session, phone: str, role: str = Role.SUBSCRIBER.value) -> Subscriber:
    subscriber = Subscriber(phone_number=phone, role=role)
    session.add(subscriber)
    await session.commit()
    return subscriber


@pytest.fixture
async def alice(session):
    return await make_subscriber(session, "+919876543210")


@pytest.fixture
async def bob(session):
    return await make_subscriber(session, "+919876543211")


@pytest.fixture
async def carol(session):
    return await make_subscriber(session, "+919812345678")


@pytest.fixture
async def admin_user(session):
    return await make_subscriber(session, "+919800000001", Role.ADMIN.value)


@pytest.fixture
def admin_actor(admin_user):
    return AuthSession(
        token="admin-token",
        subscriber_id=admin_user.id,
        phone_number=admin_user.phone_number,
        role=Role.ADMIN.value,
    )


@pytest.fixture
def subscriber_actor(alice):
    return AuthSession(
        token="alice-token",
        subscriber_id=alice.id,
        phone_number=alice.phone_number,
        role=Role.SUBSCRIBER.value,
    )


# ============================================================================
# SESSION CACHE AND IDENTITY PROVIDER
# ============================================================================

@pytest.fixture
async def fake_redis():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.flushall()


@pytest.fixture
def session_store(fake_redis):
    return SessionStore(fake_redis, ttl=3600)


class FakeIdentityProvider(IdentityProvider):
    """Every challenge gets code 123456 until it is expired"""

    CODE = "123456"

    def __init__(self):
        self.challenges = {}
        self.sent_to = []

    async def send_challenge(self, phone_number: str) -> str:
        handle = f"handle-{len(self.challenges) + 1}"
        self.challenges[handle] = phone_number
        self.sent_to.append(phone_number)
        return handle

    async def check_code(self, handle: str, code: str) -> str:
        if handle not in self.challenges:
            raise ChallengeExpired("Verification expired, request a new code")
        if code != self.CODE:
            raise InvalidCode("Wrong verification code")
        return self.challenges.pop(handle)

    def expire(self, handle: str):
        self.challenges.pop(handle, None)


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()
