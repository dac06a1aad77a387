from .sensor import (
    SensorRegister,
    ReadingCreate,
    DisconnectRequest,
    ReadingResponse,
    SensorResponse,
    SensorWithLastReading,
    RegisterResponse,
    IngestResponse,
    SuccessResponse,
    SensorDetailResponse,
    SensorListResponse,
    ReadingListResponse,
)
from .event import ConnectionEventResponse, EventListResponse

__all__ = [
    "SensorRegister",
    "ReadingCreate",
    "DisconnectRequest",
    "ReadingResponse",
    "SensorResponse",
    "SensorWithLastReading",
    "RegisterResponse",
    "IngestResponse",
    "SuccessResponse",
    "SensorDetailResponse",
    "SensorListResponse",
    "ReadingListResponse",
    "ConnectionEventResponse",
    "EventListResponse"
]
