from fastapi import APIRouter
from typing import List

from shared.config.plans import PLAN_CATALOG
from apps.schemas import PlanResponse

router = APIRouter()


@router.get("/", response_model=List[PlanResponse])
async def get_plans():
    """Static plan catalog"""
    return [PlanResponse.model_validate(plan) for plan in PLAN_CATALOG]
