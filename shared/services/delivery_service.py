"""
Delivery ledger: one record per subscriber per calendar day
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import store_errors
from ..errors import DeliveryNotFound, DuplicateDeliveryDate, PaperboyError, SubscriberNotFound, Unauthorized
from ..models.delivery import Delivery, DeliveryStatus
from ..models.subscriber import Role, Subscriber
from ..utils.time_helper import business_date, utcnow

logger = logging.getLogger(__name__)


@dataclass
class DeliveryOutcome:
    """Result of one subscriber's write within a bulk mark"""
    subscriber_id: str
    delivery: Optional[Delivery] = None
    error: Optional[PaperboyError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DeliveryService:
    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def today(now=None) -> date:
        """Delivery day for a UTC instant, in the business timezone"""
        return business_date(now)

    async def _existing(self, subscriber_id: str, delivery_date: date) -> Optional[Delivery]:
        async with store_errors("find_delivery", subscriber_id=subscriber_id, date=str(delivery_date)):
            result = await self.session.execute(
                select(Delivery)
                .where(Delivery.subscriber_id == subscriber_id)
                .where(Delivery.delivery_date == delivery_date)
            )
        return result.scalar_one_or_none()

    async def record_delivery(self, subscriber_id: str, phone: str, delivery_date: date,
                              status: DeliveryStatus) -> Delivery:
        status = DeliveryStatus(status)

        if await self._existing(subscriber_id, delivery_date):
            logger.warning(f"Delivery for subscriber {subscriber_id} on {delivery_date} already recorded")
            raise DuplicateDeliveryDate(subscriber_id, delivery_date)

        delivery = Delivery(
            subscriber_id=subscriber_id,
            subscriber_phone=phone,
            delivery_date=delivery_date,
            status=status.value,
        )
        self.session.add(delivery)
        try:
            async with store_errors("record_delivery", session=self.session,
                                    subscriber_id=subscriber_id, date=str(delivery_date)):
                await self.session.commit()
        except IntegrityError as e:
            # lost a race against a concurrent writer for the same day
            await self.session.rollback()
            raise DuplicateDeliveryDate(subscriber_id, delivery_date) from e

        logger.info(f"Recorded {status.value} for subscriber {subscriber_id} on {delivery_date}")
        return delivery

    async def correct_delivery(self, delivery_id: str, new_status: DeliveryStatus, actor) -> Delivery:
        """Overwrite the status of one record. Date and identity never change."""
        if actor.role != Role.ADMIN.value:
            raise Unauthorized("correct_delivery", actor.subscriber_id)
        new_status = DeliveryStatus(new_status)

        async with store_errors("correct_delivery", delivery_id=delivery_id):
            delivery = await self.session.get(Delivery, delivery_id)
        if not delivery:
            raise DeliveryNotFound(delivery_id)

        old_status = delivery.status
        delivery.status = new_status.value
        delivery.corrected_at = utcnow()
        async with store_errors("correct_delivery", session=self.session, delivery_id=delivery_id):
            await self.session.commit()

        logger.info(f"Delivery {delivery_id} corrected by {actor.subscriber_id}: {old_status} -> {new_status.value}")
        return delivery

    async def recent_for_subscriber(self, subscriber_id: str, limit: int = 7) -> List[Delivery]:
        async with store_errors("recent_deliveries", subscriber_id=subscriber_id):
            result = await self.session.execute(
                select(Delivery)
                .where(Delivery.subscriber_id == subscriber_id)
                .order_by(desc(Delivery.delivery_date))
                .limit(limit)
            )
        return list(result.scalars().all())

    async def bulk_mark(self, subscriber_ids: Iterable[str], delivery_date: date,
                        status: DeliveryStatus) -> List[DeliveryOutcome]:
        """Record the same outcome for many subscribers, each write independent"""
        outcomes = []
        for subscriber_id in subscriber_ids:
            try:
                async with store_errors("bulk_mark", session=self.session, subscriber_id=subscriber_id):
                    subscriber = await self.session.get(Subscriber, subscriber_id)
                if not subscriber:
                    raise SubscriberNotFound(subscriber_id)
                delivery = await self.record_delivery(subscriber_id, subscriber.phone_number, delivery_date, status)
                # keep committed rows readable if a later write rolls the session back
                self.session.expunge(delivery)
                outcomes.append(DeliveryOutcome(subscriber_id, delivery=delivery))
            except PaperboyError as e:
                outcomes.append(DeliveryOutcome(subscriber_id, error=e))

        failed = [o.subscriber_id for o in outcomes if not o.ok]
        if failed:
            logger.warning(f"Bulk mark for {delivery_date}: {len(failed)} of {len(outcomes)} failed ({failed})")
        return outcomes
