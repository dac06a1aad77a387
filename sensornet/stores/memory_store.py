"""
Volatile in-memory store used while the database is unreachable.
Readings and events are bounded deques: once full, the oldest inserted
entry is evicted first regardless of its timestamp.
"""
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Deque, Dict, Iterable, List, Optional
import itertools
import logging
import threading

from sensornet.database import utcnow
from sensornet.exceptions import NotFoundError, ValidationError
from sensornet.models import EVENT_TYPES
from sensornet.schemas import ConnectionEventResponse, ReadingResponse, SensorResponse
from sensornet.stores.base import Page, SensorStore, check_page, is_connected

logger = logging.getLogger(__name__)


@dataclass
class _SensorRecord:
    sensor_id: str
    name: str
    latitude: float
    longitude: float
    created_at: datetime
    last_seen: Optional[datetime] = None
    last_disconnected_at: Optional[datetime] = None


def _in_range(ts: datetime, start: Optional[datetime], end: Optional[datetime]) -> bool:
    if start is not None and ts < start:
        return False
    if end is not None and ts > end:
        return False
    return True


def _newest_first(items: Iterable) -> list:
    return sorted(items, key=lambda item: (item.timestamp, item.id), reverse=True)


class MemorySensorStore(SensorStore):
    def __init__(
        self,
        stale_after: timedelta,
        max_readings: int = 10000,
        max_events: int = 10000,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.stale_after = stale_after
        self.clock = clock
        self._sensors: Dict[str, _SensorRecord] = {}
        self._readings: Deque[ReadingResponse] = deque(maxlen=max_readings)
        self._events: Deque[ConnectionEventResponse] = deque(maxlen=max_events)
        self._reading_ids = itertools.count(1)
        self._event_ids = itertools.count(1)
        self._lock = threading.RLock()

    def _to_sensor(self, record: _SensorRecord) -> SensorResponse:
        return SensorResponse(
            id=record.sensor_id,
            name=record.name,
            latitude=record.latitude,
            longitude=record.longitude,
            is_connected=is_connected(record.last_seen, record.last_disconnected_at, self.clock(), self.stale_after),
            last_seen=record.last_seen,
            last_disconnected_at=record.last_disconnected_at,
            created_at=record.created_at,
        )

    # ---------- Sensors ----------
    def register_sensor(self, sensor_id: str, name: str, latitude: float, longitude: float) -> SensorResponse:
        with self._lock:
            record = self._sensors.get(sensor_id)
            if record:
                record.name = name
                record.latitude = latitude
                record.longitude = longitude
            else:
                record = _SensorRecord(sensor_id, name, latitude, longitude, created_at=self.clock())
                self._sensors[sensor_id] = record
            return self._to_sensor(record)

    def get_sensor(self, sensor_id: str) -> Optional[SensorResponse]:
        with self._lock:
            record = self._sensors.get(sensor_id)
            return self._to_sensor(record) if record else None

    def list_sensors(self) -> List[SensorResponse]:
        with self._lock:
            records = sorted(self._sensors.values(), key=lambda r: (r.name, r.sensor_id))
            return [self._to_sensor(r) for r in records]

    def delete_sensor(self, sensor_id: str) -> bool:
        with self._lock:
            if self._sensors.pop(sensor_id, None) is None:
                return False
            self._readings = deque(
                (r for r in self._readings if r.sensor_id != sensor_id), maxlen=self._readings.maxlen
            )
            self._events = deque(
                (e for e in self._events if e.sensor_id != sensor_id), maxlen=self._events.maxlen
            )
            return True

    # ---------- Readings ----------
    def insert_reading(
        self,
        sensor_id: str,
        temperature: float,
        humidity: float,
        pm25: float,
        timestamp: datetime,
    ) -> ReadingResponse:
        with self._lock:
            if sensor_id not in self._sensors:
                raise NotFoundError(f"Sensor {sensor_id} not found")
            reading = ReadingResponse(
                id=next(self._reading_ids),
                sensor_id=sensor_id,
                temperature=temperature,
                humidity=humidity,
                pm25=pm25,
                timestamp=timestamp,
            )
            self._readings.append(reading)
            return reading

    def _readings_for(self, sensor_id: str, start: Optional[datetime], end: Optional[datetime]) -> List[ReadingResponse]:
        with self._lock:
            matching = [r for r in self._readings if r.sensor_id == sensor_id and _in_range(r.timestamp, start, end)]
        return _newest_first(matching)

    def query_readings_by_sensor(self, sensor_id: str, limit: Optional[int] = None) -> List[ReadingResponse]:
        readings = self._readings_for(sensor_id, None, None)
        return readings[:limit] if limit else readings

    def query_readings_by_range(
        self,
        sensor_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[ReadingResponse]:
        return self._readings_for(sensor_id, start, end)

    def query_readings_paginated(
        self,
        sensor_id: str,
        page: int,
        page_size: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ReadingResponse]:
        check_page(page, page_size)
        readings = self._readings_for(sensor_id, start, end)
        offset = (page - 1) * page_size
        return Page(items=readings[offset:offset + page_size], total=len(readings))

    # ---------- Connection events ----------
    def insert_event(self, sensor_id: str, event_type: str, timestamp: datetime) -> ConnectionEventResponse:
        if event_type not in EVENT_TYPES:
            raise ValidationError(f"Unknown event type: {event_type}")
        with self._lock:
            if sensor_id not in self._sensors:
                raise NotFoundError(f"Sensor {sensor_id} not found")
            event = ConnectionEventResponse(
                id=next(self._event_ids),
                sensor_id=sensor_id,
                event_type=event_type,
                timestamp=timestamp,
            )
            self._events.append(event)
            return event

    def query_events(
        self,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ConnectionEventResponse]:
        with self._lock:
            matching = [
                e for e in self._events
                if (sensor_id is None or e.sensor_id == sensor_id) and _in_range(e.timestamp, start, end)
            ]
        return _newest_first(matching)

    def query_events_paginated(
        self,
        page: int,
        page_size: int,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ConnectionEventResponse]:
        check_page(page, page_size)
        events = self.query_events(sensor_id, start, end)
        offset = (page - 1) * page_size
        return Page(items=events[offset:offset + page_size], total=len(events))

    # ---------- Liveness ----------
    def mark_seen(self, sensor_id: str, seen_at: datetime, stale_before: datetime) -> bool:
        with self._lock:
            record = self._sensors.get(sensor_id)
            if record is None:
                raise NotFoundError(f"Sensor {sensor_id} not found")
            was_stale = (
                record.last_seen is None
                or record.last_seen <= stale_before
                or (record.last_disconnected_at is not None and record.last_disconnected_at >= record.last_seen)
            )
            record.last_seen = seen_at
            return was_stale

    def mark_disconnected(self, sensor_id: str, at: datetime) -> None:
        with self._lock:
            record = self._sensors.get(sensor_id)
            if record is None:
                raise NotFoundError(f"Sensor {sensor_id} not found")
            record.last_disconnected_at = at

    # ---------- Mirroring from the persistent store ----------
    def restore_sensor(self, sensor: SensorResponse) -> None:
        with self._lock:
            self._sensors[sensor.id] = _SensorRecord(
                sensor_id=sensor.id,
                name=sensor.name,
                latitude=sensor.latitude,
                longitude=sensor.longitude,
                created_at=sensor.created_at,
                last_seen=sensor.last_seen,
                last_disconnected_at=sensor.last_disconnected_at,
            )

    def restore_contact(
        self,
        sensor_id: str,
        last_seen: Optional[datetime] = None,
        last_disconnected_at: Optional[datetime] = None,
    ) -> None:
        with self._lock:
            record = self._sensors.get(sensor_id)
            if record is None:
                return
            if last_seen is not None:
                record.last_seen = last_seen
            if last_disconnected_at is not None:
                record.last_disconnected_at = last_disconnected_at

    # ---------- Retention ----------
    def purge_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            before = len(self._readings) + len(self._events)
            self._readings = deque((r for r in self._readings if r.timestamp >= cutoff), maxlen=self._readings.maxlen)
            self._events = deque((e for e in self._events if e.timestamp >= cutoff), maxlen=self._events.maxlen)
            removed = before - len(self._readings) - len(self._events)
        if removed:
            logger.info(f"Purged {removed} in-memory readings/events older than {cutoff.isoformat()}")
        return removed
