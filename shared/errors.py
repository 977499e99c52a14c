"""Error taxonomy shared by the subscription, delivery and payment engines."""

from typing import Any, Dict, Optional


class PaperboyError(Exception):
    code = "paperboy_error"
    status_code = 500

    def __init__(self, message: str, *, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "context": self.context}


class NotFound(PaperboyError):
    code = "not_found"
    status_code = 404


class PlanNotFound(NotFound):
    code = "plan_not_found"

    def __init__(self, plan_id: str):
        super().__init__(f"Plan {plan_id!r} is not in the catalog", context={"plan_id": plan_id})
        self.plan_id = plan_id


class SubscriberNotFound(NotFound):
    code = "subscriber_not_found"

    def __init__(self, subscriber_id: str):
        super().__init__(f"Subscriber {subscriber_id} not found", context={"subscriber_id": subscriber_id})
        self.subscriber_id = subscriber_id


class SubscriptionNotFound(NotFound):
    code = "subscription_not_found"

    def __init__(self, subscription_id: str, message: Optional[str] = None, **context):
        super().__init__(
            message or f"Subscription {subscription_id} not found",
            context={"subscription_id": subscription_id, **context},
        )
        self.subscription_id = subscription_id


class DeliveryNotFound(NotFound):
    code = "delivery_not_found"

    def __init__(self, delivery_id: str):
        super().__init__(f"Delivery {delivery_id} not found", context={"delivery_id": delivery_id})
        self.delivery_id = delivery_id


class PaymentNotFound(NotFound):
    code = "payment_not_found"

    def __init__(self, payment_id: str):
        super().__init__(f"Payment {payment_id} not found", context={"payment_id": payment_id})
        self.payment_id = payment_id


class ReconciliationPending(SubscriptionNotFound):
    """Payment was captured and recorded, but its subscription link did not update.

    Terminal until an administrator resolves it; the payment stays visible in
    the subscriber's history.
    """
    code = "reconciliation_pending"
    status_code = 409

    def __init__(self, payment_id: str, subscription_id: str, reason: str = "subscription did not resolve"):
        super().__init__(
            subscription_id,
            f"Payment {payment_id} recorded but not linked to subscription {subscription_id}: {reason}",
            payment_id=payment_id,
            reason=reason,
        )
        self.payment_id = payment_id


class PaymentNotRecorded(PaperboyError):
    """The store refused the payment row for a reason other than a repeated capture"""
    code = "payment_not_recorded"
    status_code = 409

    def __init__(self, capture_reference: str, subscriber_id: str):
        super().__init__(
            f"Capture {capture_reference} could not be recorded for subscriber {subscriber_id}",
            context={"capture_reference": capture_reference, "subscriber_id": subscriber_id},
        )


class DuplicateDeliveryDate(PaperboyError):
    code = "duplicate_delivery_date"
    status_code = 409

    def __init__(self, subscriber_id: str, delivery_date):
        super().__init__(
            f"Delivery already recorded for subscriber {subscriber_id} on {delivery_date}",
            context={"subscriber_id": subscriber_id, "date": str(delivery_date)},
        )
        self.subscriber_id = subscriber_id
        self.delivery_date = delivery_date


class Unauthorized(PaperboyError):
    code = "unauthorized"
    status_code = 403

    def __init__(self, operation: str, subscriber_id: Optional[str] = None):
        super().__init__(
            f"Admin role required for {operation}",
            context={"operation": operation, "subscriber_id": subscriber_id},
        )
        self.operation = operation


class StoreUnavailable(PaperboyError):
    """Transient store failure. Safe for the caller to retry; never retried here."""
    code = "store_unavailable"
    status_code = 503

    def __init__(self, operation: str, **context):
        super().__init__(f"Record store unavailable during {operation}", context={"operation": operation, **context})
        self.operation = operation


# Identity boundary

class InvalidPhoneNumber(PaperboyError):
    code = "invalid_phone_number"
    status_code = 400

    def __init__(self, phone: str):
        super().__init__(f"Invalid phone number: {phone!r}", context={"phone": phone})


class ChallengeDeliveryFailed(PaperboyError):
    code = "challenge_delivery_failed"
    status_code = 502


class InvalidCode(PaperboyError):
    code = "invalid_code"
    status_code = 401


class ChallengeExpired(PaperboyError):
    code = "challenge_expired"
    status_code = 401


class SessionExpired(PaperboyError):
    code = "session_expired"
    status_code = 401


# Payment capture boundary

class GatewayError(PaperboyError):
    code = "gateway_error"
    status_code = 502


class InvalidCaptureSignature(PaperboyError):
    code = "invalid_capture_signature"
    status_code = 400
