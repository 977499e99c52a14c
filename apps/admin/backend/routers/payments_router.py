"""
Admin view of captured payments and manual reconciliation
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import List, Optional

from shared.config.database import get_db
from shared.services.admin_service import AdminService, PaymentFilter
from shared.services.auth_service import AuthSession
from apps.dependencies import verify_admin
from apps.schemas import PaymentResponse

router = APIRouter()


class ReconcileRequest(BaseModel):
    subscription_id: str


@router.get("/", response_model=List[PaymentResponse])
async def get_payments(
    search: Optional[str] = None,
    pending_only: bool = False,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """List payments, optionally only those awaiting reconciliation"""
    payments = await AdminService(db, admin).list_payments(PaymentFilter(phone=search, pending_only=pending_only))
    return [PaymentResponse.model_validate(p) for p in payments]


@router.post("/{payment_id}/reconcile", response_model=PaymentResponse)
async def reconcile_payment(
    payment_id: str,
    body: ReconcileRequest,
    db: AsyncSession = Depends(get_db),
    admin: AuthSession = Depends(verify_admin)
):
    """Link a flagged payment to the subscription it paid for"""
    payment = await AdminService(db, admin).resolve_reconciliation(payment_id, body.subscription_id)
    return PaymentResponse.model_validate(payment)
