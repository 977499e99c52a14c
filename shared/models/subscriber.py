from enum import Enum

from sqlalchemy import Column, String
from sqlalchemy.orm import relationship
from .base import BaseModel


class Role(str, Enum):
    SUBSCRIBER = "subscriber"
    ADMIN = "admin"


class Subscriber(BaseModel):
    __tablename__ = "subscribers"

    phone_number = Column(String, unique=True, index=True, nullable=False)  # +91XXXXXXXXXX
    role = Column(String, nullable=False, default=Role.SUBSCRIBER.value)  # changed out of band only

    # Relationships
    subscriptions = relationship("Subscription", back_populates="subscriber")
    deliveries = relationship("Delivery", back_populates="subscriber")
    payments = relationship("Payment", back_populates="subscriber")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value
