"""
Payment reconciliation tests: capture recording, subscription linking,
reconciliation-pending handling and the Razorpay gateway adapter.
"""

import hashlib
import hmac
import json

import httpx
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from shared.errors import (
    GatewayError,
    InvalidCaptureSignature,
    PaymentNotRecorded,
    ReconciliationPending,
    StoreUnavailable,
    SubscriptionNotFound,
)
from shared.config.plans import PLAN_CATALOG
from shared.models.payment import Payment
from shared.models.subscription import Subscription
from shared.services.capture_gateway import RazorpayGateway
from shared.services.payment_service import CaptureOptions, PaymentService
from shared.services.subscription_service import SubscriptionService, select_plan

from tests.conftest import T0, day

SECRET = "rzp_test_secret"


def options_for(subscriber, amount=300, subscription_id=None):
    return CaptureOptions(
        subscriber_id=subscriber.id,
        subscriber_phone=subscriber.phone_number,
        amount=amount,
        description="Monthly newspaper subscription",
        subscription_id=subscription_id,
    )


def unconfigured_gateway():
    return RazorpayGateway(key_id="", key_secret="")


# ============================================================================
# CAPTURE CONFIRMATION
# ============================================================================

class TestCaptureConfirmed:

    async def test_links_subscription(self, session, alice):
        sub = await SubscriptionService(session).subscribe(alice.id, "monthly", T0)
        service = PaymentService(session, unconfigured_gateway())

        payment = await service.capture_confirmed("pay_001", options_for(alice, 300, sub.id), now=day(1))

        assert payment.status == "completed"
        assert payment.subscription_id == sub.id
        assert payment.needs_reconciliation is False
        refreshed = await session.get(Subscription, sub.id)
        assert refreshed.last_payment_amount == 300
        assert refreshed.last_payment_at == day(1)

    async def test_payment_does_not_renew(self, session, alice):
        sub = await SubscriptionService(session).subscribe(alice.id, "monthly", T0)
        end_before = sub.ends_at

        await PaymentService(session, unconfigured_gateway()).capture_confirmed(
            "pay_002", options_for(alice, 300, sub.id), now=day(2)
        )

        assert (await session.get(Subscription, sub.id)).ends_at == end_before

    async def test_unresolved_subscription_keeps_payment(self, session, alice):
        service = PaymentService(session, unconfigured_gateway())

        with pytest.raises(ReconciliationPending) as exc_info:
            await service.capture_confirmed("pay_003", options_for(alice, 850, "missing-sub"), now=day(1))

        error = exc_info.value
        assert isinstance(error, SubscriptionNotFound)
        assert not isinstance(error, StoreUnavailable)
        assert error.context["subscription_id"] == "missing-sub"

        history = await service.history_for_subscriber(alice.id)
        assert [p.capture_reference for p in history] == ["pay_003"]
        assert history[0].id == error.payment_id
        assert history[0].needs_reconciliation is True
        assert history[0].subscription_id is None
        assert history[0].requested_subscription_id == "missing-sub"

    async def test_other_subscribers_subscription_is_not_linked(self, session, alice, bob):
        bobs = await SubscriptionService(session).subscribe(bob.id, "monthly", T0)
        service = PaymentService(session, unconfigured_gateway())

        with pytest.raises(ReconciliationPending):
            await service.capture_confirmed("pay_004", options_for(alice, 300, bobs.id), now=day(1))
        assert (await session.get(Subscription, bobs.id)).last_payment_amount is None

    async def test_store_failure_while_linking(self, session, alice, monkeypatch):
        sub = await SubscriptionService(session).subscribe(alice.id, "monthly", T0)
        service = PaymentService(session, unconfigured_gateway())

        async def connection_reset(subscription_id):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        monkeypatch.setattr(service, "_load_subscription", connection_reset)

        with pytest.raises(ReconciliationPending) as exc_info:
            await service.capture_confirmed("pay_005", options_for(alice, 300, sub.id), now=day(1))
        assert isinstance(exc_info.value.__cause__, StoreUnavailable)

        payment = await session.get(Payment, exc_info.value.payment_id)
        assert payment.needs_reconciliation is True

    async def test_payment_stays_pending_when_flag_write_fails(self, session, alice, monkeypatch):
        sub = await SubscriptionService(session).subscribe(alice.id, "monthly", T0)
        options = options_for(alice, 300, sub.id)
        service = PaymentService(session, unconfigured_gateway())

        async def connection_reset(subscription_id):
            raise OperationalError("SELECT", {}, Exception("connection reset"))

        async def flag_write_fails(payment_id, reason):
            raise StoreUnavailable("flag_payment", payment_id=payment_id)

        monkeypatch.setattr(service, "_load_subscription", connection_reset)
        monkeypatch.setattr(service, "_flag", flag_write_fails)

        with pytest.raises(ReconciliationPending) as exc_info:
            await service.capture_confirmed("pay_010", options, now=day(1))
        assert exc_info.value.__cause__.operation == "flag_payment"

        session.expire_all()
        pending = await service.pending_reconciliation()
        assert [p.capture_reference for p in pending] == ["pay_010"]

        with pytest.raises(ReconciliationPending):
            await service.capture_confirmed("pay_010", options, now=day(2))

    async def test_concurrent_duplicate_of_flagged_capture(self, session, alice, monkeypatch):
        options = options_for(alice, 850, "typo")
        service = PaymentService(session, unconfigured_gateway())
        with pytest.raises(ReconciliationPending):
            await service.capture_confirmed("pay_011", options, now=day(1))

        # the first lookup misses the row another writer just committed
        stored_lookup = service.get_by_capture_reference
        lookups = []

        async def racing_lookup(capture_reference):
            lookups.append(capture_reference)
            if len(lookups) == 1:
                return None
            return await stored_lookup(capture_reference)

        monkeypatch.setattr(service, "get_by_capture_reference", racing_lookup)

        with pytest.raises(ReconciliationPending):
            await service.capture_confirmed("pay_011", options, now=day(2))
        assert len(lookups) == 2
        count = await session.execute(select(func.count(Payment.id)))
        assert count.scalar() == 1

    async def test_rejected_insert_is_reported_as_not_recorded(self, session, alice, monkeypatch):
        options = options_for(alice)
        service = PaymentService(session, unconfigured_gateway())
        await service.capture_confirmed("pay_012", options, now=day(1))

        async def never_found(capture_reference):
            return None

        monkeypatch.setattr(service, "get_by_capture_reference", never_found)

        with pytest.raises(PaymentNotRecorded) as exc_info:
            await service.capture_confirmed("pay_012", options, now=day(2))
        assert isinstance(exc_info.value.__cause__, IntegrityError)
        assert exc_info.value.context["capture_reference"] == "pay_012"

    async def test_repeated_confirmation_is_idempotent(self, session, alice):
        service = PaymentService(session, unconfigured_gateway())
        first = await service.capture_confirmed("pay_006", options_for(alice), now=day(1))
        second = await service.capture_confirmed("pay_006", options_for(alice), now=day(2))

        assert second.id == first.id
        count = await session.execute(select(func.count(Payment.id)))
        assert count.scalar() == 1

    async def test_without_subscription(self, session, alice):
        payment = await PaymentService(session, unconfigured_gateway()).capture_confirmed(
            "pay_007", options_for(alice, 50), now=day(1)
        )
        assert payment.subscription_id is None
        assert payment.needs_reconciliation is False

    def test_amount_must_be_positive(self, alice):
        with pytest.raises(ValueError):
            options_for(alice, amount=0)


class TestHistory:

    async def test_newest_first_and_limited(self, session, alice, bob):
        service = PaymentService(session, unconfigured_gateway())
        for n in range(1, 8):
            await service.capture_confirmed(f"pay_a{n}", options_for(alice, 100 * n), now=day(n))
        await service.capture_confirmed("pay_b1", options_for(bob), now=day(3))

        history = await service.history_for_subscriber(alice.id, limit=5)
        assert [p.amount for p in history] == [700, 600, 500, 400, 300]


class TestResolveReconciliation:

    async def test_manual_link_clears_flag(self, session, alice):
        sub = await SubscriptionService(session).subscribe(alice.id, "monthly", T0)
        service = PaymentService(session, unconfigured_gateway())
        with pytest.raises(ReconciliationPending) as exc_info:
            await service.capture_confirmed("pay_008", options_for(alice, 300, "typo"), now=day(1))

        payment = await service.resolve_reconciliation(exc_info.value.payment_id, sub.id, now=day(2))

        assert payment.needs_reconciliation is False
        assert payment.subscription_id == sub.id
        assert payment.reconciled_at == day(2)
        assert (await session.get(Subscription, sub.id)).last_payment_amount == 300
        assert await service.pending_reconciliation() == []

    async def test_rejects_foreign_subscription(self, session, alice, bob):
        bobs = await SubscriptionService(session).subscribe(bob.id, "monthly", T0)
        service = PaymentService(session, unconfigured_gateway())
        with pytest.raises(ReconciliationPending) as exc_info:
            await service.capture_confirmed("pay_009", options_for(alice, 300, "typo"), now=day(1))

        with pytest.raises(SubscriptionNotFound):
            await service.resolve_reconciliation(exc_info.value.payment_id, bobs.id)


# ============================================================================
# GATEWAY
# ============================================================================

def sign(order_id: str, payment_id: str, secret: str = SECRET) -> str:
    return hmac.new(secret.encode(), f"{order_id}|{payment_id}".encode(), hashlib.sha256).hexdigest()


def mock_gateway(handler) -> RazorpayGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RazorpayGateway(key_id="rzp_test_key", key_secret=SECRET,
                           api_url="https://api.razorpay.com/v1", client=client)


class TestRazorpayGateway:

    def test_signature_verification(self):
        gateway = RazorpayGateway(key_id="rzp_test_key", key_secret=SECRET)
        assert gateway.verify_signature("order_1", "pay_1", sign("order_1", "pay_1"))
        assert not gateway.verify_signature("order_1", "pay_2", sign("order_1", "pay_1"))
        assert not gateway.verify_signature("order_1", "pay_1", None)

    async def test_create_order_in_paise(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "order_abc", "amount": seen["body"]["amount"]})

        order = await mock_gateway(handler).create_order(300, "INR", "monthly_1")

        assert order["id"] == "order_abc"
        assert seen["path"] == "/v1/orders"
        assert seen["body"]["amount"] == 30000
        assert seen["body"]["currency"] == "INR"

    async def test_rejected_order(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"description": "amount too small"}})

        with pytest.raises(GatewayError) as exc_info:
            await mock_gateway(handler).create_order(1, "INR", "r1")
        assert "amount too small" in exc_info.value.message

    async def test_unconfigured_gateway_cannot_create_orders(self):
        with pytest.raises(GatewayError):
            await unconfigured_gateway().create_order(300, "INR", "r1")


class TestCheckout:

    async def test_checkout_with_order(self, session, alice):
        def handler(request):
            return httpx.Response(200, json={"id": "order_xyz"})

        service = PaymentService(session, mock_gateway(handler))
        checkout = await service.create_checkout(alice, select_plan(PLAN_CATALOG, "monthly"), "sub-1")

        assert checkout["order_id"] == "order_xyz"
        assert checkout["amount"] == 30000
        assert checkout["prefill"] == {"contact": alice.phone_number}
        assert checkout["notes"]["subscription_id"] == "sub-1"

    async def test_checkout_without_gateway_keys(self, session, alice):
        service = PaymentService(session, unconfigured_gateway())
        checkout = await service.create_checkout(alice, select_plan(PLAN_CATALOG, "yearly"))

        assert "order_id" not in checkout
        assert checkout["amount"] == 320000

    async def test_signed_capture(self, session, alice):
        service = PaymentService(session, mock_gateway(lambda r: httpx.Response(500)))

        with pytest.raises(InvalidCaptureSignature):
            await service.confirm_signed_capture("pay_s1", "order_1", "forged", options_for(alice))
        assert await service.history_for_subscriber(alice.id) == []

        payment = await service.confirm_signed_capture(
            "pay_s1", "order_1", sign("order_1", "pay_s1"), options_for(alice)
        )
        assert payment.capture_reference == "pay_s1"
