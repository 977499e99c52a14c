"""
Checkout preparation and capture confirmation for the subscriber portal
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import Any, Dict, List, Optional

from shared.config.database import get_db
from shared.config.plans import PLAN_CATALOG
from shared.config.settings import settings
from shared.errors import SubscriberNotFound
from shared.models.subscriber import Subscriber
from shared.services.auth_service import AuthSession
from shared.services.payment_service import CaptureOptions, PaymentService
from shared.services.subscription_service import select_plan
from apps.dependencies import current_session
from apps.schemas import PaymentResponse

router = APIRouter()


class CheckoutRequest(BaseModel):
    plan_id: str
    subscription_id: Optional[str] = None


class CaptureRequest(BaseModel):
    plan_id: str
    payment_reference: str
    order_id: Optional[str] = None
    signature: Optional[str] = None
    subscription_id: Optional[str] = None


def get_payment_service(db: AsyncSession = Depends(get_db)) -> PaymentService:
    return PaymentService(db)


@router.get("/", response_model=List[PaymentResponse])
async def get_my_payments(
    limit: int = 5,
    service: PaymentService = Depends(get_payment_service),
    auth: AuthSession = Depends(current_session)
):
    payments = await service.history_for_subscriber(auth.subscriber_id, limit)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.post("/checkout")
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    service: PaymentService = Depends(get_payment_service),
    auth: AuthSession = Depends(current_session)
) -> Dict[str, Any]:
    """Options for the checkout widget"""
    plan = select_plan(PLAN_CATALOG, body.plan_id)
    subscriber = await db.get(Subscriber, auth.subscriber_id)
    if not subscriber:
        raise SubscriberNotFound(auth.subscriber_id)
    return await service.create_checkout(subscriber, plan, body.subscription_id)


@router.post("/capture", response_model=PaymentResponse)
async def confirm_capture(
    body: CaptureRequest,
    service: PaymentService = Depends(get_payment_service),
    auth: AuthSession = Depends(current_session)
):
    """Called from the checkout success handler only; abandoned checkouts never get here"""
    plan = select_plan(PLAN_CATALOG, body.plan_id)
    options = CaptureOptions(
        subscriber_id=auth.subscriber_id,
        subscriber_phone=auth.phone_number,
        amount=plan.price,
        currency=settings.currency,
        description=f"{plan.name} newspaper subscription",
        subscription_id=body.subscription_id,
    )
    payment = await service.confirm_signed_capture(body.payment_reference, body.order_id, body.signature, options)
    return PaymentResponse.model_validate(payment)
