from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from typing import Optional
import logging

from sensornet.dependencies import get_broadcaster, get_store
from sensornet.exceptions import SensorNetError
from sensornet.routers.filters import QueryFilters
from sensornet.schemas import EventListResponse
from sensornet.services.broadcaster import EventBroadcaster
from sensornet.stores.base import SensorStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/events", tags=["events"])

@router.get("/", response_model=EventListResponse, response_model_exclude_none=True)
def list_connection_events(
    sensor_id: Optional[str] = Query(None, alias="sensorId"),
    filters: QueryFilters = Depends(),
    store: SensorStore = Depends(get_store),
):
    """Connection journal across all sensors, optionally narrowed to one"""
    try:
        if filters.paginated:
            result = store.query_events_paginated(
                filters.page, filters.page_size, sensor_id, filters.start, filters.end
            )
            return EventListResponse(
                events=result.items,
                total=result.total,
                page=filters.page,
                page_size=filters.page_size,
            )
        events = store.query_events(sensor_id, filters.start, filters.end)
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error fetching connection events: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch connection events")
    if filters.limit:
        events = events[:filters.limit]
    return EventListResponse(events=events)

@router.get("/stream")
async def stream_events(broadcaster: EventBroadcaster = Depends(get_broadcaster)):
    """Server-Sent Events feed of new readings and connection events"""
    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(broadcaster.stream(), media_type="text/event-stream", headers=headers)
