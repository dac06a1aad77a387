"""
Store contract shared by the SQL store and the in-memory fallback.

Both backends keep only last_seen / last_disconnected_at on a sensor and
derive is_connected on every read with is_connected() below, so the two
can never disagree about liveness.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Generic, List, Optional, TypeVar

from sensornet.exceptions import ValidationError
from sensornet.schemas import ConnectionEventResponse, ReadingResponse, SensorResponse

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0


def is_connected(
    last_seen: Optional[datetime],
    last_disconnected_at: Optional[datetime],
    now: datetime,
    stale_after: timedelta,
) -> bool:
    """A sensor is live if it was seen within the threshold and has not
    explicitly disconnected since.

    The disconnect clause goes beyond a pure recency check: after an
    explicit disconnect the next contact counts as stale and journals a
    fresh connect, even inside the threshold.
    """
    if last_seen is None:
        return False
    if last_disconnected_at is not None and last_disconnected_at >= last_seen:
        return False
    return now - last_seen < stale_after


def check_page(page: int, page_size: int) -> None:
    if page < 1:
        raise ValidationError("page must be >= 1")
    if page_size < 1:
        raise ValidationError("pageSize must be >= 1")


class SensorStore(ABC):
    """Readings, connection events and sensors, queried most-recent-first"""

    @abstractmethod
    def register_sensor(self, sensor_id: str, name: str, latitude: float, longitude: float) -> SensorResponse:
        ...

    @abstractmethod
    def get_sensor(self, sensor_id: str) -> Optional[SensorResponse]:
        ...

    @abstractmethod
    def list_sensors(self) -> List[SensorResponse]:
        ...

    @abstractmethod
    def delete_sensor(self, sensor_id: str) -> bool:
        """Remove a sensor with its readings and events. False if unknown."""

    @abstractmethod
    def insert_reading(
        self,
        sensor_id: str,
        temperature: float,
        humidity: float,
        pm25: float,
        timestamp: datetime,
    ) -> ReadingResponse:
        ...

    @abstractmethod
    def query_readings_by_sensor(self, sensor_id: str, limit: Optional[int] = None) -> List[ReadingResponse]:
        ...

    @abstractmethod
    def query_readings_by_range(
        self,
        sensor_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[ReadingResponse]:
        ...

    @abstractmethod
    def query_readings_paginated(
        self,
        sensor_id: str,
        page: int,
        page_size: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ReadingResponse]:
        ...

    @abstractmethod
    def insert_event(self, sensor_id: str, event_type: str, timestamp: datetime) -> ConnectionEventResponse:
        ...

    @abstractmethod
    def query_events(
        self,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ConnectionEventResponse]:
        ...

    @abstractmethod
    def query_events_paginated(
        self,
        page: int,
        page_size: int,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ConnectionEventResponse]:
        ...

    @abstractmethod
    def mark_seen(self, sensor_id: str, seen_at: datetime, stale_before: datetime) -> bool:
        """Set last_seen to seen_at and report whether the sensor was stale.

        Stale means never seen, last seen at or before stale_before, or
        explicitly disconnected since last contact. The check and the write
        happen atomically so concurrent callers see at most one True per
        transition. Raises NotFoundError for unknown sensors.
        """

    @abstractmethod
    def mark_disconnected(self, sensor_id: str, at: datetime) -> None:
        ...

    def purge_older_than(self, cutoff: datetime) -> int:
        """Drop readings and events older than cutoff. Durable stores keep everything."""
        return 0

    def init_schema(self) -> None:
        pass

    def restore_sensor(self, sensor: SensorResponse) -> None:
        """Copy a sensor row read from another store, liveness timestamps included.
        Only stores that stand in for another one need this."""

    def restore_contact(
        self,
        sensor_id: str,
        last_seen: Optional[datetime] = None,
        last_disconnected_at: Optional[datetime] = None,
    ) -> None:
        """Carry a liveness update over from another store. Unknown ids are ignored."""
