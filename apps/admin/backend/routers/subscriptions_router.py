from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from shared.config.database import get_db
from shared.models.subscription import SubscriptionStatus
from shared.services.admin_service import AdminService, SubscriptionFilter
from shared.services.auth_service import AuthSession
from shared.utils.time_helper import utcnow
from apps.dependencies import verify_admin
from apps.schemas import PlanRequest, SubscriptionResponse

router = APIRouter()


class SubscribeForRequest(PlanRequest):
    subscriber_id: str


@router.get("/", response_model=List[SubscriptionResponse])
async def get_subscriptions(
    search: Optional[str] = None,
    status: Optional[SubscriptionStatus] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """List subscriptions with derived status, filtered by phone substring"""
    now = utcnow()
    subscriptions = await AdminService(db, admin).list_subscriptions(
        SubscriptionFilter(phone=search, status=status), now
    )
    return [SubscriptionResponse.build(s, now) for s in subscriptions]


@router.post("/", response_model=SubscriptionResponse)
async def subscribe_for(
    body: SubscribeForRequest,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Start or extend a subscriber's plan"""
    now = utcnow()
    subscription = await AdminService(db, admin).subscribe_for(body.subscriber_id, body.plan_id, now)
    return SubscriptionResponse.build(subscription, now)


@router.post("/expire-stale")
async def expire_stale(
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Bring stored status in line with end dates"""
    count = await AdminService(db, admin).expire_stale(utcnow())
    return {"expired": count}


@router.post("/{subscription_id}/renew", response_model=SubscriptionResponse)
async def renew_subscription(
    subscription_id: str,
    body: PlanRequest,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Manual renewal, kept separate from payment capture"""
    now = utcnow()
    subscription = await AdminService(db, admin).renew_subscription(subscription_id, body.plan_id, now)
    return SubscriptionResponse.build(subscription, now)
