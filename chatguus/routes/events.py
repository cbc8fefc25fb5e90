"""Usage event ingestion for the widget"""

from fastapi import APIRouter, Depends

from ..dependencies import get_event_service
from ..events import UsageEventService
from ..models import UsageEventRequest

router = APIRouter()


@router.post("/analytics")
async def track_event(
    body: UsageEventRequest,
    service: UsageEventService = Depends(get_event_service),
):
    return await service.track(body)
