from enum import Enum

from sqlalchemy import Column, String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class DeliveryStatus(str, Enum):
    DELIVERED = "delivered"
    MISSED = "missed"


class Delivery(BaseModel):
    __tablename__ = "deliveries"
    __table_args__ = (
        UniqueConstraint("subscriber_id", "delivery_date", name="uq_deliveries_subscriber_date"),
    )

    subscriber_id = Column(String(32), ForeignKey("subscribers.id"), nullable=False, index=True)
    subscriber_phone = Column(String, nullable=False)  # denormalized for display

    delivery_date = Column(Date, nullable=False, index=True)
    status = Column(String, nullable=False, index=True)  # delivered, missed

    # Set when an administrator overwrites the status
    corrected_at = Column(DateTime, nullable=True)

    # Relationships
    subscriber = relationship("Subscriber", back_populates="deliveries")
