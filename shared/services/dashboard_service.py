from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..models.delivery import Delivery
from ..models.payment import Payment
from ..models.subscription import Subscription, SubscriptionStatus
from .delivery_service import DeliveryService
from .payment_service import PaymentService
from .subscription_service import SubscriptionService, days_left, derive_status

RECENT_DELIVERIES = 7
RECENT_PAYMENTS = 5


@dataclass
class DashboardSummary:
    subscription: Optional[Subscription]
    status: Optional[SubscriptionStatus]
    days_left: int
    deliveries: List[Delivery] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)


class DashboardService:
    """What a subscriber sees on sign in: current plan, last week's deliveries, recent payments"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def summary(self, subscriber_id: str, now: datetime) -> DashboardSummary:
        subscription = await SubscriptionService(self.session).get_current(subscriber_id, now)
        deliveries = await DeliveryService(self.session).recent_for_subscriber(subscriber_id, RECENT_DELIVERIES)
        payments = await PaymentService(self.session).history_for_subscriber(subscriber_id, RECENT_PAYMENTS)

        return DashboardSummary(
            subscription=subscription,
            status=derive_status(subscription, now) if subscription else None,
            days_left=days_left(subscription, now) if subscription else 0,
            deliveries=deliveries,
            payments=payments,
        )
