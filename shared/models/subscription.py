from enum import Enum

from sqlalchemy import Column, String, BigInteger, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    EXPIRED = "expired"


class Subscription(BaseModel):
    __tablename__ = "subscriptions"
    __table_args__ = (
        CheckConstraint("ends_at > starts_at", name="ck_subscriptions_ends_after_start"),
    )

    subscriber_id = Column(String(32), ForeignKey("subscribers.id"), nullable=False, index=True)

    # Plan details
    plan_id = Column(String, nullable=False)  # monthly, quarterly, yearly
    plan_name = Column(String, nullable=False)

    # Timing
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)

    # Query index only; derive_status() is authoritative
    status = Column(String, nullable=False, default=SubscriptionStatus.ACTIVE.value, index=True)

    # Payment bookkeeping
    last_payment_at = Column(DateTime, nullable=True)
    last_payment_amount = Column(BigInteger, nullable=True)

    # Relationships
    subscriber = relationship("Subscriber", back_populates="subscriptions")
    payments = relationship("Payment", back_populates="subscription")
