from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import List, Optional

from shared.config.database import get_db
from shared.services.auth_service import AuthSession
from shared.services.dashboard_service import DashboardService
from shared.utils.time_helper import utcnow
from apps.dependencies import current_session
from apps.schemas import DeliveryResponse, PaymentResponse, SubscriptionResponse

router = APIRouter()


class DashboardResponse(BaseModel):
    phone_number: str
    subscription: Optional[SubscriptionResponse] = None
    days_left: int = 0
    deliveries: List[DeliveryResponse] = []
    payments: List[PaymentResponse] = []


@router.get("/", response_model=DashboardResponse)
async def get_dashboard(
    db: AsyncSession = Depends(get_db),
    auth: AuthSession = Depends(current_session)
):
    """Current plan, the last week of deliveries and recent payments"""
    now = utcnow()
    summary = await DashboardService(db).summary(auth.subscriber_id, now)

    return DashboardResponse(
        phone_number=auth.phone_number,
        subscription=SubscriptionResponse.build(summary.subscription, now) if summary.subscription else None,
        days_left=summary.days_left,
        deliveries=[DeliveryResponse.model_validate(d) for d in summary.deliveries],
        payments=[PaymentResponse.model_validate(p) for p in summary.payments]
    )
