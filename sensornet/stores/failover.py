"""
Routes store calls to the persistent store until it fails once, then to
the in-memory fallback for the rest of the process lifetime. Only a
restart brings the persistent store back; fallback data is never merged.

While the persistent store is healthy, sensor rows and their liveness
timestamps are copied into the fallback as they pass through, so
registered sensors keep ingesting after the switch. Readings and events
are not copied.
"""
from datetime import datetime
from typing import List, Optional
import logging

from sensornet.exceptions import BackendUnavailableError
from sensornet.schemas import ConnectionEventResponse, ReadingResponse, SensorResponse
from sensornet.stores.base import Page, SensorStore

logger = logging.getLogger(__name__)

class FailoverStore(SensorStore):
    def __init__(self, primary: SensorStore, fallback: SensorStore):
        self.primary = primary
        self.fallback = fallback
        self.primary_available = True

    @property
    def backend(self) -> str:
        return "persistent" if self.primary_available else "fallback"

    def _dispatch(self, method: str, *args, **kwargs):
        if self.primary_available:
            try:
                result = getattr(self.primary, method)(*args, **kwargs)
            except BackendUnavailableError as e:
                self._latch(method, e)
            else:
                self._mirror(method, args, result)
                return result
        return getattr(self.fallback, method)(*args, **kwargs)

    def _mirror(self, method: str, args: tuple, result) -> None:
        # The fallback must already know every sensor when the latch trips,
        # since devices keep sending without registering again
        if method in ("register_sensor", "get_sensor") and result is not None:
            self.fallback.restore_sensor(result)
        elif method == "list_sensors":
            for sensor in result:
                self.fallback.restore_sensor(sensor)
        elif method == "mark_seen":
            self.fallback.restore_contact(args[0], last_seen=args[1])
        elif method == "mark_disconnected":
            self.fallback.restore_contact(args[0], last_disconnected_at=args[1])
        elif method == "delete_sensor" and result:
            self.fallback.delete_sensor(args[0])

    def _latch(self, method: str, error: Exception) -> None:
        if self.primary_available:
            self.primary_available = False
            logger.error(
                f"Persistent store failed during {method}: {error}. "
                "Using in-memory fallback until restart"
            )

    def init_schema(self) -> None:
        self._dispatch("init_schema")

    def register_sensor(self, sensor_id: str, name: str, latitude: float, longitude: float) -> SensorResponse:
        return self._dispatch("register_sensor", sensor_id, name, latitude, longitude)

    def get_sensor(self, sensor_id: str) -> Optional[SensorResponse]:
        return self._dispatch("get_sensor", sensor_id)

    def list_sensors(self) -> List[SensorResponse]:
        return self._dispatch("list_sensors")

    def delete_sensor(self, sensor_id: str) -> bool:
        return self._dispatch("delete_sensor", sensor_id)

    def insert_reading(
        self,
        sensor_id: str,
        temperature: float,
        humidity: float,
        pm25: float,
        timestamp: datetime,
    ) -> ReadingResponse:
        return self._dispatch("insert_reading", sensor_id, temperature, humidity, pm25, timestamp)

    def query_readings_by_sensor(self, sensor_id: str, limit: Optional[int] = None) -> List[ReadingResponse]:
        return self._dispatch("query_readings_by_sensor", sensor_id, limit)

    def query_readings_by_range(
        self,
        sensor_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[ReadingResponse]:
        return self._dispatch("query_readings_by_range", sensor_id, start, end)

    def query_readings_paginated(
        self,
        sensor_id: str,
        page: int,
        page_size: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ReadingResponse]:
        return self._dispatch("query_readings_paginated", sensor_id, page, page_size, start, end)

    def insert_event(self, sensor_id: str, event_type: str, timestamp: datetime) -> ConnectionEventResponse:
        return self._dispatch("insert_event", sensor_id, event_type, timestamp)

    def query_events(
        self,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ConnectionEventResponse]:
        return self._dispatch("query_events", sensor_id, start, end)

    def query_events_paginated(
        self,
        page: int,
        page_size: int,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ConnectionEventResponse]:
        return self._dispatch("query_events_paginated", page, page_size, sensor_id, start, end)

    def mark_seen(self, sensor_id: str, seen_at: datetime, stale_before: datetime) -> bool:
        return self._dispatch("mark_seen", sensor_id, seen_at, stale_before)

    def mark_disconnected(self, sensor_id: str, at: datetime) -> None:
        self._dispatch("mark_disconnected", sensor_id, at)

    def purge_older_than(self, cutoff: datetime) -> int:
        return self.fallback.purge_older_than(cutoff)
