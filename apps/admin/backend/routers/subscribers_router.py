from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import List, Optional

from shared.config.database import get_db
from shared.services.admin_service import AdminService
from shared.services.auth_service import AuthSession
from shared.utils.time_helper import utcnow
from apps.dependencies import verify_admin
from apps.schemas import SubscriberResponse

router = APIRouter()


class OverviewResponse(BaseModel):
    subscribers: int
    active_subscriptions: int
    delivered_today: int
    missed_today: int
    revenue: int
    pending_reconciliation: int

    class Config:
        from_attributes = True


@router.get("/stats", response_model=OverviewResponse)
async def get_overview(
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Counts for the admin dashboard header"""
    overview = await AdminService(db, admin).overview(utcnow())
    return OverviewResponse.model_validate(overview)


@router.get("/", response_model=List[SubscriberResponse])
async def get_subscribers(
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """List subscribers, optionally filtered by phone substring"""
    subscribers = await AdminService(db, admin).list_subscribers(search)
    return [SubscriberResponse.model_validate(s) for s in subscribers]
