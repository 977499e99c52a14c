"""
Admin aggregation view across all subscribers.

Listings are full-collection scans filtered in process by phone substring.
That only holds up while a single operator's subscriber base stays small;
there is no index-backed search behind it. Nothing is cached between calls,
so a write made just before a listing may not be visible yet.
"""
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import store_errors
from ..errors import SubscriberNotFound, Unauthorized
from ..models.delivery import Delivery, DeliveryStatus
from ..models.payment import Payment
from ..models.subscriber import Role, Subscriber
from ..models.subscription import Subscription, SubscriptionStatus
from .delivery_service import DeliveryOutcome, DeliveryService
from .payment_service import PaymentService
from .subscription_service import SubscriptionService, derive_status
from ..utils.time_helper import utcnow

logger = logging.getLogger(__name__)


@dataclass
class SubscriptionFilter:
    phone: Optional[str] = None
    status: Optional[SubscriptionStatus] = None   # derived, not stored


@dataclass
class DeliveryFilter:
    phone: Optional[str] = None
    delivery_date: Optional[date] = None
    status: Optional[DeliveryStatus] = None


@dataclass
class PaymentFilter:
    phone: Optional[str] = None
    pending_only: bool = False


@dataclass
class Overview:
    subscribers: int
    active_subscriptions: int
    delivered_today: int
    missed_today: int
    revenue: int
    pending_reconciliation: int


def _phone_matches(phone: Optional[str], needle: Optional[str]) -> bool:
    return not needle or needle in (phone or "")


class AdminService:
    def __init__(self, session: AsyncSession, actor):
        self.session = session
        self.actor = actor
        self.subscriptions = SubscriptionService(session)
        self.deliveries = DeliveryService(session)
        self.payments = PaymentService(session)

    def _require_admin(self, operation: str):
        if getattr(self.actor, "role", None) != Role.ADMIN.value:
            logger.warning(f"Refused {operation} for non-admin {getattr(self.actor, 'subscriber_id', None)}")
            raise Unauthorized(operation, getattr(self.actor, "subscriber_id", None))

    async def _scan(self, model) -> list:
        async with store_errors(f"scan_{model.__tablename__}"):
            result = await self.session.execute(select(model))
        return list(result.scalars().all())

    async def _phones_by_subscriber(self) -> dict:
        return {s.id: s.phone_number for s in await self._scan(Subscriber)}

    # Read model

    async def list_subscribers(self, filter_phone_substring: Optional[str] = None) -> List[Subscriber]:
        subscribers = await self._scan(Subscriber)
        matched = [s for s in subscribers if _phone_matches(s.phone_number, filter_phone_substring)]
        return sorted(matched, key=lambda s: s.created_at, reverse=True)

    async def list_subscriptions(self, filter: Optional[SubscriptionFilter] = None,
                                 now: Optional[datetime] = None) -> List[Subscription]:
        filter = filter or SubscriptionFilter()
        now = now or utcnow()
        phones = await self._phones_by_subscriber()
        matched = []
        for subscription in await self._scan(Subscription):
            if not _phone_matches(phones.get(subscription.subscriber_id), filter.phone):
                continue
            if filter.status and derive_status(subscription, now) != filter.status:
                continue
            matched.append(subscription)
        return sorted(matched, key=lambda s: s.starts_at, reverse=True)

    async def list_deliveries(self, filter: Optional[DeliveryFilter] = None) -> List[Delivery]:
        filter = filter or DeliveryFilter()
        matched = [
            d for d in await self._scan(Delivery)
            if _phone_matches(d.subscriber_phone, filter.phone)
            and (filter.delivery_date is None or d.delivery_date == filter.delivery_date)
            and (filter.status is None or d.status == filter.status)
        ]
        return sorted(matched, key=lambda d: d.delivery_date, reverse=True)

    async def list_payments(self, filter: Optional[PaymentFilter] = None) -> List[Payment]:
        filter = filter or PaymentFilter()
        if filter.pending_only:
            payments = await self.payments.pending_reconciliation()
        else:
            payments = await self._scan(Payment)
        matched = [p for p in payments if _phone_matches(p.subscriber_phone, filter.phone)]
        return sorted(matched, key=lambda p: p.paid_at, reverse=True)

    async def overview(self, now: datetime) -> Overview:
        today = DeliveryService.today(now)
        subscriptions = await self._scan(Subscription)
        todays = [d for d in await self._scan(Delivery) if d.delivery_date == today]
        payments = await self._scan(Payment)

        return Overview(
            subscribers=len(await self._scan(Subscriber)),
            active_subscriptions=len({
                s.subscriber_id for s in subscriptions
                if derive_status(s, now) == SubscriptionStatus.ACTIVE
            }),
            delivered_today=sum(1 for d in todays if d.status == DeliveryStatus.DELIVERED.value),
            missed_today=sum(1 for d in todays if d.status == DeliveryStatus.MISSED.value),
            revenue=sum(p.amount for p in payments),
            pending_reconciliation=sum(1 for p in payments if p.needs_reconciliation),
        )

    # Mutations

    async def mark_delivery(self, subscriber_id: str, status: DeliveryStatus,
                            delivery_date: Optional[date] = None) -> Delivery:
        self._require_admin("mark_delivery")
        async with store_errors("mark_delivery", subscriber_id=subscriber_id):
            subscriber = await self.session.get(Subscriber, subscriber_id)
        if not subscriber:
            raise SubscriberNotFound(subscriber_id)
        return await self.deliveries.record_delivery(
            subscriber.id, subscriber.phone_number, delivery_date or DeliveryService.today(), status
        )

    async def bulk_mark(self, subscriber_ids: Iterable[str], delivery_date: date,
                        status: DeliveryStatus) -> List[DeliveryOutcome]:
        self._require_admin("bulk_mark")
        return await self.deliveries.bulk_mark(subscriber_ids, delivery_date, status)

    async def correct_delivery(self, delivery_id: str, new_status: DeliveryStatus) -> Delivery:
        self._require_admin("correct_delivery")
        return await self.deliveries.correct_delivery(delivery_id, new_status, self.actor)

    async def subscribe_for(self, subscriber_id: str, plan_id: str, now: datetime) -> Subscription:
        self._require_admin("subscribe_for")
        async with store_errors("subscribe_for", subscriber_id=subscriber_id):
            subscriber = await self.session.get(Subscriber, subscriber_id)
        if not subscriber:
            raise SubscriberNotFound(subscriber_id)
        return await self.subscriptions.subscribe(subscriber_id, plan_id, now)

    async def renew_subscription(self, subscription_id: str, plan_id: str, now: datetime) -> Subscription:
        self._require_admin("renew_subscription")
        return await self.subscriptions.renew_subscription(subscription_id, plan_id, now)

    async def resolve_reconciliation(self, payment_id: str, subscription_id: str) -> Payment:
        self._require_admin("resolve_reconciliation")
        return await self.payments.resolve_reconciliation(payment_id, subscription_id)

    async def expire_stale(self, now: datetime) -> int:
        self._require_admin("expire_stale")
        return await self.subscriptions.expire_stale(now)
