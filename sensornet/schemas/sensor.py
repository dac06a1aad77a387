from pydantic import AliasChoices, Field
from typing import Optional, List

from .base import CamelModel, UtcDatetime

class SensorRegister(CamelModel):
    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "sensorId", "sensor_id"))
    name: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90, allow_inf_nan=False)
    longitude: float = Field(ge=-180, le=180, allow_inf_nan=False)

class ReadingCreate(CamelModel):
    sensor_id: str = Field(min_length=1)
    temperature: float = Field(allow_inf_nan=False)  # °C
    humidity: float = Field(allow_inf_nan=False)  # %
    pm25: float = Field(allow_inf_nan=False)  # µg/m³

class DisconnectRequest(CamelModel):
    sensor_id: str = Field(min_length=1)

class ReadingResponse(CamelModel):
    id: int
    sensor_id: str
    temperature: float
    humidity: float
    pm25: float
    timestamp: UtcDatetime

class SensorResponse(CamelModel):
    id: str
    name: str
    latitude: float
    longitude: float
    is_connected: bool
    last_seen: Optional[UtcDatetime] = None
    last_disconnected_at: Optional[UtcDatetime] = None
    created_at: UtcDatetime

class SensorWithLastReading(SensorResponse):
    last_reading: Optional[ReadingResponse] = None

class RegisterResponse(CamelModel):
    success: bool = True
    sensor: SensorResponse

class IngestResponse(CamelModel):
    success: bool = True
    reading: ReadingResponse

class SuccessResponse(CamelModel):
    success: bool = True

class SensorDetailResponse(CamelModel):
    sensor: SensorWithLastReading

class SensorListResponse(CamelModel):
    sensors: List[SensorWithLastReading]
    error: Optional[str] = None

class ReadingListResponse(CamelModel):
    readings: List[ReadingResponse]
    total: Optional[int] = None
    page: Optional[int] = None
    page_size: Optional[int] = None
