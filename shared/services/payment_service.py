"""
Payment reconciliation: record captured payments and link them to subscriptions
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config.database import store_errors
from ..config.plans import SubscriptionPlan
from ..config.settings import settings
from ..errors import (
    InvalidCaptureSignature,
    PaymentNotFound,
    PaymentNotRecorded,
    ReconciliationPending,
    StoreUnavailable,
    SubscriptionNotFound,
)
from ..models.payment import Payment, PAYMENT_COMPLETED
from ..models.subscriber import Subscriber
from ..models.subscription import Subscription
from ..utils.time_helper import utcnow
from .capture_gateway import RazorpayGateway, to_minor_units

logger = logging.getLogger(__name__)

LINK_IN_PROGRESS = "awaiting subscription link"


@dataclass
class CaptureOptions:
    subscriber_id: str
    subscriber_phone: str
    amount: int
    description: str
    currency: str = "INR"
    subscription_id: Optional[str] = None
    method: str = "RazorPay"

    def __post_init__(self):
        if self.amount <= 0:
            raise ValueError(f"Payment amount must be positive, got {self.amount}")


class PaymentService:
    def __init__(self, session: AsyncSession, gateway: Optional[RazorpayGateway] = None):
        self.session = session
        self.gateway = gateway or RazorpayGateway()

    async def get_by_capture_reference(self, capture_reference: str) -> Optional[Payment]:
        async with store_errors("find_payment", capture_reference=capture_reference):
            result = await self.session.execute(
                select(Payment).where(Payment.capture_reference == capture_reference)
            )
        return result.scalar_one_or_none()

    async def capture_confirmed(self, capture_reference: str, options: CaptureOptions,
                                now: Optional[datetime] = None) -> Payment:
        """Record a capture the payment boundary reported as successful.

        The payment is written first and committed on its own; linking it to
        a subscription is a second step. A payment that names a subscription
        is stored already flagged for reconciliation, and the flag is cleared
        in the same commit that updates the subscription. If linking cannot
        complete the payment stays recorded and flagged, and
        ReconciliationPending is raised.
        """
        now = now or utcnow()

        existing = await self.get_by_capture_reference(capture_reference)
        if existing:
            return self._already_recorded(existing)

        payment = Payment(
            subscriber_id=options.subscriber_id,
            subscriber_phone=options.subscriber_phone,
            amount=options.amount,
            currency=options.currency,
            capture_reference=capture_reference,
            paid_at=now,
            method=options.method,
            status=PAYMENT_COMPLETED,
            description=options.description,
            requested_subscription_id=options.subscription_id,
            needs_reconciliation=bool(options.subscription_id),
            reconciliation_note=LINK_IN_PROGRESS if options.subscription_id else None,
        )
        self.session.add(payment)
        try:
            async with store_errors("record_payment", session=self.session,
                                    capture_reference=capture_reference, subscriber_id=options.subscriber_id):
                await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            existing = await self.get_by_capture_reference(capture_reference)
            if existing is None:
                logger.error(f"Store rejected capture {capture_reference}: {e}")
                raise PaymentNotRecorded(capture_reference, options.subscriber_id) from e
            # concurrent confirmation of the same capture won the insert
            return self._already_recorded(existing)

        payment_id = payment.id
        logger.info(
            f"Recorded payment {payment_id} ({options.amount} {options.currency}) "
            f"for subscriber {options.subscriber_id}, capture {capture_reference}"
        )

        if options.subscription_id:
            await self._link_subscription(payment, options.subscription_id, options.subscriber_id)
        return payment

    def _already_recorded(self, existing: Payment) -> Payment:
        logger.info(f"Capture {existing.capture_reference} already recorded as payment {existing.id}")
        if existing.needs_reconciliation:
            raise ReconciliationPending(existing.id, existing.requested_subscription_id or "",
                                        existing.reconciliation_note or "awaiting manual reconciliation")
        return existing

    async def _link_subscription(self, payment: Payment, subscription_id: str, subscriber_id: str):
        payment_id = payment.id
        cause = None
        try:
            async with store_errors("link_payment", session=self.session,
                                    payment_id=payment_id, subscription_id=subscription_id):
                subscription = await self._load_subscription(subscription_id)
            if subscription and subscription.subscriber_id == subscriber_id:
                subscription.last_payment_at = payment.paid_at
                subscription.last_payment_amount = payment.amount
                payment.subscription_id = subscription.id
                payment.needs_reconciliation = False
                payment.reconciliation_note = None
                async with store_errors("link_payment", session=self.session,
                                        payment_id=payment_id, subscription_id=subscription_id):
                    await self.session.commit()
                logger.info(f"Linked payment {payment_id} to subscription {subscription_id}")
                return
            reason = "subscription did not resolve"
        except StoreUnavailable as e:
            reason = f"bookkeeping update failed during {e.operation}"
            cause = e

        logger.error(f"Payment {payment_id} needs manual reconciliation with {subscription_id}: {reason}")
        try:
            await self._flag(payment_id, reason)
        except StoreUnavailable as e:
            # the row was stored flagged, only the reason is missing
            logger.error(f"Could not record reconciliation reason for payment {payment_id}")
            raise ReconciliationPending(payment_id, subscription_id, reason) from e
        raise ReconciliationPending(payment_id, subscription_id, reason) from cause

    async def _load_subscription(self, subscription_id: str) -> Optional[Subscription]:
        return await self.session.get(Subscription, subscription_id)

    async def _flag(self, payment_id: str, reason: str):
        async with store_errors("flag_payment", session=self.session, payment_id=payment_id):
            payment = await self.session.get(Payment, payment_id)
            payment.needs_reconciliation = True
            payment.reconciliation_note = reason
            await self.session.commit()

    async def history_for_subscriber(self, subscriber_id: str, limit: int = 5) -> List[Payment]:
        async with store_errors("payment_history", subscriber_id=subscriber_id):
            result = await self.session.execute(
                select(Payment)
                .where(Payment.subscriber_id == subscriber_id)
                .order_by(desc(Payment.paid_at))
                .limit(limit)
            )
        return list(result.scalars().all())

    async def pending_reconciliation(self) -> List[Payment]:
        async with store_errors("pending_reconciliation"):
            result = await self.session.execute(
                select(Payment)
                .where(Payment.needs_reconciliation == True)  # noqa: E712
                .order_by(desc(Payment.paid_at))
            )
        return list(result.scalars().all())

    async def resolve_reconciliation(self, payment_id: str, subscription_id: str,
                                     now: Optional[datetime] = None) -> Payment:
        """Manually link a flagged payment to the subscription it pays for"""
        async with store_errors("resolve_reconciliation", payment_id=payment_id):
            payment = await self.session.get(Payment, payment_id)
            subscription = await self.session.get(Subscription, subscription_id)
        if not payment:
            raise PaymentNotFound(payment_id)
        if not subscription:
            raise SubscriptionNotFound(subscription_id)
        if subscription.subscriber_id != payment.subscriber_id:
            raise SubscriptionNotFound(
                subscription_id,
                f"Subscription {subscription_id} does not belong to subscriber {payment.subscriber_id}",
                payment_id=payment_id,
            )

        if not subscription.last_payment_at or payment.paid_at >= subscription.last_payment_at:
            subscription.last_payment_at = payment.paid_at
            subscription.last_payment_amount = payment.amount
        payment.subscription_id = subscription.id
        payment.needs_reconciliation = False
        payment.reconciled_at = now or utcnow()
        async with store_errors("resolve_reconciliation", session=self.session, payment_id=payment_id):
            await self.session.commit()

        logger.info(f"Reconciled payment {payment_id} with subscription {subscription_id}")
        return payment

    async def create_checkout(self, subscriber: Subscriber, plan: SubscriptionPlan,
                              subscription_id: Optional[str] = None) -> Dict[str, Any]:
        """Options for the checkout widget; opens a gateway order when keys are configured"""
        description = f"{plan.name} newspaper subscription ({plan.duration_days} days)"
        notes = {"subscriber_id": subscriber.id, "plan_id": plan.id}
        if subscription_id:
            notes["subscription_id"] = subscription_id

        checkout = {
            "key": self.gateway.key_id,
            "amount": to_minor_units(plan.price),
            "currency": settings.currency,
            "name": settings.merchant_name,
            "description": description,
            "prefill": {"contact": subscriber.phone_number},
            "notes": notes,
        }

        if self.gateway.configured:
            receipt = f"{plan.id}_{uuid.uuid4().hex[:12]}"
            order = await self.gateway.create_order(plan.price, settings.currency, receipt, notes)
            checkout["order_id"] = order["id"]

        logger.info(f"Prepared checkout for subscriber {subscriber.id}, plan {plan.id}")
        return checkout

    async def confirm_signed_capture(self, payment_reference: str, order_id: Optional[str],
                                     signature: Optional[str], options: CaptureOptions,
                                     now: Optional[datetime] = None) -> Payment:
        """Verify the checkout handler's signature, then record the capture"""
        if self.gateway.configured:
            if not order_id or not self.gateway.verify_signature(order_id, payment_reference, signature):
                logger.warning(f"Rejected capture {payment_reference}: bad signature")
                raise InvalidCaptureSignature(
                    "Capture signature did not verify",
                    context={"capture_reference": payment_reference, "order_id": order_id},
                )
        return await self.capture_confirmed(payment_reference, options, now)
