"""Satisfaction rating endpoints"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_satisfaction_service
from ..models import SatisfactionRequest
from ..satisfaction import SatisfactionService

router = APIRouter()


@router.post("/satisfaction")
async def submit_rating(
    body: SatisfactionRequest,
    service: SatisfactionService = Depends(get_satisfaction_service),
):
    """Store a rating and fan it out to the configured destinations"""
    response = await service.submit(body)
    return response.dump()


@router.get("/satisfaction")
async def rating_analytics(
    tenant: Optional[str] = Query(None),
    period: Optional[str] = Query("30d"),
    service: SatisfactionService = Depends(get_satisfaction_service),
):
    return await service.analytics(tenant, period)
