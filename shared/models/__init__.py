from .subscriber import Subscriber, Role
from .subscription import Subscription, SubscriptionStatus
from .delivery import Delivery, DeliveryStatus
from .payment import Payment, PAYMENT_COMPLETED

__all__ = [
    "Subscriber",
    "Role",
    "Subscription",
    "SubscriptionStatus",
    "Delivery",
    "DeliveryStatus",
    "Payment",
    "PAYMENT_COMPLETED",
]
