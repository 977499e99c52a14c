from sqlalchemy import Column, String, BigInteger, DateTime, Boolean, ForeignKey, Text
from sqlalchemy.orm import relationship
from .base import BaseModel

PAYMENT_COMPLETED = "completed"


class Payment(BaseModel):
    __tablename__ = "payments"

    subscriber_id = Column(String(32), ForeignKey("subscribers.id"), nullable=False, index=True)
    subscriber_phone = Column(String, nullable=False)

    # Capture details
    amount = Column(BigInteger, nullable=False)  # whole currency units
    currency = Column(String, nullable=False, default="INR")
    capture_reference = Column(String, unique=True, nullable=False, index=True)
    paid_at = Column(DateTime, nullable=False, index=True)
    method = Column(String, nullable=False, default="RazorPay")
    status = Column(String, nullable=False, default=PAYMENT_COMPLETED)  # failed captures never reach the store
    description = Column(Text, nullable=True)

    # Subscription link
    subscription_id = Column(String(32), ForeignKey("subscriptions.id"), nullable=True)  # set once resolved
    requested_subscription_id = Column(String(32), nullable=True)  # as supplied with the capture
    needs_reconciliation = Column(Boolean, nullable=False, default=False, index=True)
    reconciliation_note = Column(Text, nullable=True)
    reconciled_at = Column(DateTime, nullable=True)

    # Relationships
    subscriber = relationship("Subscriber", back_populates="payments")
    subscription = relationship("Subscription", back_populates="payments")
