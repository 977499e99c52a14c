"""
Subscription lifecycle: derived status, days left, plan selection and renewal
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import store_errors
from ..config.plans import PLAN_CATALOG, SubscriptionPlan
from ..errors import PlanNotFound, SubscriptionNotFound
from ..models.subscription import Subscription, SubscriptionStatus

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def derive_status(subscription: Subscription, now: datetime) -> SubscriptionStatus:
    """Authoritative status. The stored ``status`` column is only a query index."""
    if now < subscription.ends_at:
        return SubscriptionStatus.ACTIVE
    return SubscriptionStatus.EXPIRED


def days_left(subscription: Subscription, now: datetime) -> int:
    remaining = subscription.ends_at - now
    if remaining <= timedelta(0):
        return 0
    return math.ceil(remaining / ONE_DAY)


def select_plan(catalog: Iterable[SubscriptionPlan], plan_id: str) -> SubscriptionPlan:
    plan = next((p for p in catalog if p.id == plan_id), None)
    if not plan:
        raise PlanNotFound(plan_id)
    return plan


def create_subscription(subscriber_id: str, plan: SubscriptionPlan, now: datetime) -> Subscription:
    return Subscription(
        subscriber_id=subscriber_id,
        plan_id=plan.id,
        plan_name=plan.name,
        starts_at=now,
        ends_at=now + timedelta(days=plan.duration_days),
        status=SubscriptionStatus.ACTIVE.value,
    )


def renew(subscription: Subscription, plan: SubscriptionPlan, now: datetime) -> Subscription:
    """Extend an active subscription, or start a fresh one if it has lapsed.

    Active subscriptions stack the plan duration onto the current end so paid
    days are never lost; the end date never moves backwards. An expired
    subscription is left as is and a new, unsaved record anchored at ``now``
    is returned in its place.
    """
    if derive_status(subscription, now) == SubscriptionStatus.EXPIRED:
        return create_subscription(subscription.subscriber_id, plan, now)

    subscription.ends_at = subscription.ends_at + timedelta(days=plan.duration_days)
    subscription.plan_id = plan.id
    subscription.plan_name = plan.name
    subscription.status = SubscriptionStatus.ACTIVE.value
    return subscription


class SubscriptionService:
    def __init__(self, session: AsyncSession, catalog: Iterable[SubscriptionPlan] = PLAN_CATALOG):
        self.session = session
        self.catalog = tuple(catalog)

    async def get(self, subscription_id: str) -> Subscription:
        async with store_errors("get_subscription", subscription_id=subscription_id):
            subscription = await self.session.get(Subscription, subscription_id)
        if not subscription:
            raise SubscriptionNotFound(subscription_id)
        return subscription

    async def _stored_active(self, subscriber_id: str) -> List[Subscription]:
        async with store_errors("stored_active_subscriptions", subscriber_id=subscriber_id):
            result = await self.session.execute(
                select(Subscription)
                .where(Subscription.subscriber_id == subscriber_id)
                .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
                .order_by(desc(Subscription.ends_at))
            )
        return list(result.scalars().all())

    async def get_current(self, subscriber_id: str, now: datetime) -> Optional[Subscription]:
        """Subscription that is active right now, if any"""
        for subscription in await self._stored_active(subscriber_id):
            if derive_status(subscription, now) == SubscriptionStatus.ACTIVE:
                return subscription
        return None

    async def history_for_subscriber(self, subscriber_id: str) -> List[Subscription]:
        async with store_errors("subscription_history", subscriber_id=subscriber_id):
            result = await self.session.execute(
                select(Subscription)
                .where(Subscription.subscriber_id == subscriber_id)
                .order_by(desc(Subscription.starts_at))
            )
        return list(result.scalars().all())

    async def subscribe(self, subscriber_id: str, plan_id: str, now: datetime) -> Subscription:
        """Buy or renew a plan, keeping at most one stored-active subscription"""
        plan = select_plan(self.catalog, plan_id)

        current = None
        for subscription in await self._stored_active(subscriber_id):
            if current is None and derive_status(subscription, now) == SubscriptionStatus.ACTIVE:
                current = subscription
            else:
                # lapsed, or a stray second active row
                subscription.status = SubscriptionStatus.EXPIRED.value

        if current:
            old_end = current.ends_at
            subscription = renew(current, plan, now)
            logger.info(
                f"Renewed subscription {subscription.id} for subscriber {subscriber_id}: "
                f"{old_end} -> {subscription.ends_at}"
            )
        else:
            subscription = create_subscription(subscriber_id, plan, now)
            self.session.add(subscription)

        async with store_errors("subscribe", session=self.session, subscriber_id=subscriber_id, plan_id=plan_id):
            await self.session.commit()

        if not current:
            logger.info(
                f"Created subscription {subscription.id} ({plan.id}) for subscriber {subscriber_id}, "
                f"ends {subscription.ends_at}"
            )
        return subscription

    async def renew_subscription(self, subscription_id: str, plan_id: str, now: datetime) -> Subscription:
        """Renew a specific subscription record (manual admin renewal)"""
        plan = select_plan(self.catalog, plan_id)
        subscription = await self.get(subscription_id)
        if derive_status(subscription, now) == SubscriptionStatus.EXPIRED:
            # starting over; a newer active record may exist, route through subscribe
            return await self.subscribe(subscription.subscriber_id, plan.id, now)

        renew(subscription, plan, now)
        async with store_errors("renew_subscription", session=self.session,
                                subscription_id=subscription_id, plan_id=plan_id):
            await self.session.commit()
        logger.info(f"Renewed subscription {subscription.id} until {subscription.ends_at}")
        return subscription

    async def expire_stale(self, now: datetime) -> int:
        """Demote stored-active rows whose derived status has lapsed"""
        async with store_errors("expire_stale", session=self.session):
            result = await self.session.execute(
                select(Subscription)
                .where(Subscription.status == SubscriptionStatus.ACTIVE.value)
                .where(Subscription.ends_at <= now)
            )
            stale = list(result.scalars().all())
            for subscription in stale:
                subscription.status = SubscriptionStatus.EXPIRED.value
            await self.session.commit()

        if stale:
            logger.info(f"Marked {len(stale)} subscriptions expired")
        return len(stale)
