"""
Phone-number sign in through an external identity provider
"""
import logging
import re
import secrets
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import store_errors
from ..config.redis import SessionStore
from ..config.settings import settings
from ..errors import InvalidPhoneNumber, SessionExpired
from ..models.subscriber import Role, Subscriber

logger = logging.getLogger(__name__)

PHONE_DIGITS = re.compile(r"^\d{10}$")
PREFIXED_PHONE = re.compile(r"^\+\d{1,3}\d{10}$")


class IdentityProvider(ABC):
    """Challenge/response phone verification.

    Implementations raise ChallengeDeliveryFailed, InvalidCode or
    ChallengeExpired from ``shared.errors``.
    """

    @abstractmethod
    async def send_challenge(self, phone_number: str) -> str:
        """Send a one-time code and return the verification handle"""

    @abstractmethod
    async def check_code(self, handle: str, code: str) -> str:
        """Return the verified phone number for a correct code"""


@dataclass
class AuthSession:
    token: str
    subscriber_id: str
    phone_number: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value


def normalize_phone(raw: str, country_code: Optional[str] = None) -> str:
    """Accept ``XXXXXXXXXX`` or an already prefixed ``+CCXXXXXXXXXX``"""
    phone = re.sub(r"[\s\-()]", "", raw or "")
    if PHONE_DIGITS.match(phone):
        return f"{country_code or settings.default_country_code}{phone}"
    if PREFIXED_PHONE.match(phone):
        return phone
    raise InvalidPhoneNumber(raw)


class AuthService:
    def __init__(self, session: AsyncSession, provider: IdentityProvider, sessions: SessionStore):
        self.session = session
        self.provider = provider
        self.sessions = sessions

    async def request_challenge(self, raw_phone: str) -> str:
        phone = normalize_phone(raw_phone)
        handle = await self.provider.send_challenge(phone)
        logger.info(f"Verification code sent to {phone}")
        return handle

    async def get_or_create_subscriber(self, phone_number: str) -> Subscriber:
        async with store_errors("get_or_create_subscriber", session=self.session, phone=phone_number):
            result = await self.session.execute(
                select(Subscriber).where(Subscriber.phone_number == phone_number)
            )
            subscriber = result.scalar_one_or_none()

            if not subscriber:
                subscriber = Subscriber(phone_number=phone_number, role=Role.SUBSCRIBER.value)
                self.session.add(subscriber)
                await self.session.commit()
                logger.info(f"Created subscriber {subscriber.id} for {phone_number}")

        return subscriber

    async def verify(self, handle: str, code: str) -> AuthSession:
        phone = await self.provider.check_code(handle, code)
        subscriber = await self.get_or_create_subscriber(phone)

        auth = AuthSession(
            token=secrets.token_urlsafe(32),
            subscriber_id=subscriber.id,
            phone_number=subscriber.phone_number,
            role=subscriber.role,
        )
        await self.sessions.set_session(auth.token, asdict(auth))
        logger.info(f"Subscriber {subscriber.id} signed in as {subscriber.role}")
        return auth


async def resolve_session(sessions: SessionStore, token: str) -> AuthSession:
    """Session behind a bearer token; the role is whatever was cached at sign in"""
    data = await sessions.get_session(token)
    if not data:
        raise SessionExpired("Session expired or unknown, sign in again")
    return AuthSession(**data)


async def end_session(sessions: SessionStore, token: str):
    await sessions.delete_session(token)
    logger.info("Session ended")
