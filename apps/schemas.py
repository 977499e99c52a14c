"""Response and request bodies shared by the portal and admin APIs"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from shared.models.delivery import DeliveryStatus
from shared.models.subscription import Subscription
from shared.services.subscription_service import days_left, derive_status


class PlanResponse(BaseModel):
    id: str
    name: str
    price: int
    duration_days: int
    features: List[str]

    class Config:
        from_attributes = True


class SubscriberResponse(BaseModel):
    id: str
    phone_number: str
    role: str
    created_at: datetime

    class Config:
        from_attributes = True


class SubscriptionResponse(BaseModel):
    id: str
    subscriber_id: str
    plan_id: str
    plan_name: str
    starts_at: datetime
    ends_at: datetime
    status: str          # derived at response time
    days_left: int
    last_payment_at: Optional[datetime] = None
    last_payment_amount: Optional[int] = None

    @classmethod
    def build(cls, subscription: Subscription, now: datetime) -> "SubscriptionResponse":
        return cls(
            id=subscription.id,
            subscriber_id=subscription.subscriber_id,
            plan_id=subscription.plan_id,
            plan_name=subscription.plan_name,
            starts_at=subscription.starts_at,
            ends_at=subscription.ends_at,
            status=derive_status(subscription, now).value,
            days_left=days_left(subscription, now),
            last_payment_at=subscription.last_payment_at,
            last_payment_amount=subscription.last_payment_amount,
        )


class DeliveryResponse(BaseModel):
    id: str
    subscriber_id: str
    subscriber_phone: str
    delivery_date: date
    status: str
    corrected_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    id: str
    subscriber_id: str
    subscriber_phone: str
    amount: int
    currency: str
    capture_reference: str
    paid_at: datetime
    method: str
    status: str
    description: Optional[str] = None
    subscription_id: Optional[str] = None
    requested_subscription_id: Optional[str] = None
    needs_reconciliation: bool = False
    reconciliation_note: Optional[str] = None

    class Config:
        from_attributes = True


class DeliveryStatusRequest(BaseModel):
    status: DeliveryStatus


class PlanRequest(BaseModel):
    plan_id: str = Field(..., min_length=1)
