from typing import List, Literal, Optional

from .base import CamelModel, UtcDatetime

class ConnectionEventResponse(CamelModel):
    id: int
    sensor_id: str
    event_type: Literal["connect", "disconnect"]
    timestamp: UtcDatetime

class EventListResponse(CamelModel):
    events: List[ConnectionEventResponse]
    total: Optional[int] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
