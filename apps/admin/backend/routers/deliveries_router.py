from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel, Field
from datetime import date
from typing import List, Optional

from shared.config.database import get_db
from shared.models.delivery import DeliveryStatus
from shared.services.admin_service import AdminService, DeliveryFilter
from shared.services.auth_service import AuthSession
from shared.services.delivery_service import DeliveryService
from apps.dependencies import verify_admin
from apps.schemas import DeliveryResponse, DeliveryStatusRequest

router = APIRouter()


class MarkDeliveryRequest(DeliveryStatusRequest):
    subscriber_id: str
    delivery_date: Optional[date] = None


class BulkMarkRequest(DeliveryStatusRequest):
    subscriber_ids: List[str] = Field(..., min_length=1)
    delivery_date: Optional[date] = None


class BulkMarkResult(BaseModel):
    subscriber_id: str
    ok: bool
    delivery: Optional[DeliveryResponse] = None
    error: Optional[dict] = None


@router.get("/", response_model=List[DeliveryResponse])
async def get_deliveries(
    search: Optional[str] = None,
    delivery_date: Optional[date] = None,
    status: Optional[DeliveryStatus] = None,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """List delivery records, newest day first"""
    deliveries = await AdminService(db, admin).list_deliveries(
        DeliveryFilter(phone=search, delivery_date=delivery_date, status=status)
    )
    return [DeliveryResponse.model_validate(d) for d in deliveries]


@router.post("/", response_model=DeliveryResponse)
async def mark_delivery(
    body: MarkDeliveryRequest,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Record one subscriber's delivery outcome, today unless a date is given"""
    delivery = await AdminService(db, admin).mark_delivery(body.subscriber_id, body.status, body.delivery_date)
    return DeliveryResponse.model_validate(delivery)


@router.post("/bulk", response_model=List[BulkMarkResult])
async def bulk_mark(
    body: BulkMarkRequest,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Mark many subscribers at once; each write succeeds or fails on its own"""
    outcomes = await AdminService(db, admin).bulk_mark(
        body.subscriber_ids, body.delivery_date or DeliveryService.today(), body.status
    )
    return [
        BulkMarkResult(
            subscriber_id=o.subscriber_id,
            ok=o.ok,
            delivery=DeliveryResponse.model_validate(o.delivery) if o.delivery else None,
            error=o.error.to_dict() if o.error else None,
        )
        for o in outcomes
    ]


@router.patch("/{delivery_id}", response_model=DeliveryResponse)
async def correct_delivery(
    delivery_id: str,
    body: DeliveryStatusRequest,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Overwrite the status of an existing record"""
    delivery = await AdminService(db, admin).correct_delivery(delivery_id, body.status)
    return DeliveryResponse.model_validate(delivery)
