from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from shared.config.database import get_db
from shared.services.auth_service import AuthSession
from shared.services.subscription_service import SubscriptionService
from shared.utils.time_helper import utcnow
from apps.dependencies import current_session
from apps.schemas import SubscriptionResponse

router = APIRouter()


@router.get("/", response_model=List[SubscriptionResponse])
async def get_my_subscriptions(
    db: AsyncSession = Depends(get_db),
    auth: AuthSession = Depends(current_session)
):
    """Read only; subscriptions are granted and renewed from the admin app"""
    now = utcnow()
    subscriptions = await SubscriptionService(db).history_for_subscriber(auth.subscriber_id)
    return [SubscriptionResponse.build(s, now) for s in subscriptions]
