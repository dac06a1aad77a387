from fastapi import APIRouter, Depends, HTTPException
import logging

from sensornet.dependencies import get_engine, get_store
from sensornet.exceptions import NotFoundError, SensorNetError
from sensornet.routers.filters import QueryFilters
from sensornet.schemas import (
    DisconnectRequest,
    EventListResponse,
    IngestResponse,
    ReadingCreate,
    ReadingListResponse,
    RegisterResponse,
    SensorDetailResponse,
    SensorListResponse,
    SensorRegister,
    SensorResponse,
    SensorWithLastReading,
    SuccessResponse,
)
from sensornet.services.liveness import LivenessEngine
from sensornet.stores.base import SensorStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/sensors", tags=["sensors"])

def _with_last_reading(store: SensorStore, sensor: SensorResponse) -> SensorWithLastReading:
    latest = store.query_readings_by_sensor(sensor.id, limit=1)
    return SensorWithLastReading(**sensor.model_dump(), last_reading=latest[0] if latest else None)

# ---------- Ingest: device-facing write path ----------
@router.post("/register", response_model=RegisterResponse)
def register_sensor(payload: SensorRegister, store: SensorStore = Depends(get_store)):
    """Create a sensor or update its name and location"""
    try:
        sensor = store.register_sensor(payload.id, payload.name, payload.latitude, payload.longitude)
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error registering sensor {payload.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to register sensor")
    return RegisterResponse(sensor=sensor)

@router.post("/data", response_model=IngestResponse)
def submit_reading(payload: ReadingCreate, engine: LivenessEngine = Depends(get_engine)):
    """Store a reading and mark the sensor live"""
    try:
        reading = engine.record_reading(payload.sensor_id, payload.temperature, payload.humidity, payload.pm25)
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error saving sensor data for {payload.sensor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to save sensor data")
    return IngestResponse(reading=reading)

@router.post("/disconnect", response_model=SuccessResponse)
def disconnect_sensor(
    payload: DisconnectRequest,
    store: SensorStore = Depends(get_store),
    engine: LivenessEngine = Depends(get_engine),
):
    """Explicit disconnect, always journaled"""
    try:
        if store.get_sensor(payload.sensor_id) is None:
            raise NotFoundError("Sensor not found")
        engine.set_connection(payload.sensor_id, False)
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error disconnecting sensor {payload.sensor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to disconnect sensor")
    return SuccessResponse()

# ---------- Query: dashboard-facing read path ----------
@router.get("/list", response_model=SensorListResponse)
def list_sensors(store: SensorStore = Depends(get_store)):
    """All sensors with their latest reading. Degrades to an empty list instead of failing."""
    try:
        sensors = [_with_last_reading(store, s) for s in store.list_sensors()]
    except Exception as e:
        logger.error(f"Error fetching sensors: {str(e)}")
        return SensorListResponse(sensors=[], error=str(e) or "Failed to fetch sensors")
    return SensorListResponse(sensors=sensors)

@router.get("/{sensor_id}", response_model=SensorDetailResponse)
def get_sensor(sensor_id: str, store: SensorStore = Depends(get_store)):
    try:
        sensor = store.get_sensor(sensor_id)
        if not sensor:
            raise NotFoundError("Sensor not found")
        return SensorDetailResponse(sensor=_with_last_reading(store, sensor))
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error fetching sensor {sensor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch sensor")

@router.delete("/{sensor_id}", response_model=SuccessResponse)
def delete_sensor(sensor_id: str, store: SensorStore = Depends(get_store)):
    """Remove a sensor together with its readings and connection events"""
    try:
        deleted = store.delete_sensor(sensor_id)
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error deleting sensor {sensor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to delete sensor")
    if not deleted:
        raise NotFoundError("Sensor not found")
    return SuccessResponse()

@router.get("/{sensor_id}/readings", response_model=ReadingListResponse, response_model_exclude_none=True)
def get_readings(sensor_id: str, filters: QueryFilters = Depends(), store: SensorStore = Depends(get_store)):
    try:
        if filters.paginated:
            result = store.query_readings_paginated(
                sensor_id, filters.page, filters.page_size, filters.start, filters.end
            )
            return ReadingListResponse(
                readings=result.items,
                total=result.total,
                page=filters.page,
                page_size=filters.page_size,
            )
        if filters.has_range:
            readings = store.query_readings_by_range(sensor_id, filters.start, filters.end)
        else:
            readings = store.query_readings_by_sensor(sensor_id, filters.limit)
    except SensorNetError:
        raise
    except Exception as e:
        logger.error(f"Error fetching readings for {sensor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch readings")
    return ReadingListResponse(readings=readings)

@router.get("/{sensor_id}/events", response_model=EventListResponse, response_model_exclude_none=True)
def get_connection_events(sensor_id: str, filters: QueryFilters = Depends(), store: SensorStore = Depends(get_store)):
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
        logger.error(f"Error fetching connection events for {sensor_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to fetch connection events")
    if filters.limit:
        events = events[:filters.limit]
    return EventListResponse(events=events)
