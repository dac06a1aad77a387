"""
Connection liveness inferred from last-seen timestamps.

There is no heartbeat protocol: every reading (or explicit connect) marks
the sensor live, and a sensor is considered disconnected once nothing has
arrived for the stale threshold. A connect event is journaled only when a
stale or never-seen sensor becomes live again, so a burst of readings
yields a single connect. Explicit disconnects are always journaled.
"""
from datetime import datetime, timedelta
from typing import Callable, Optional
import logging

from sensornet.database import utcnow
from sensornet.exceptions import NotFoundError
from sensornet.models import CONNECT, DISCONNECT
from sensornet.schemas import ConnectionEventResponse, ReadingResponse
from sensornet.services.broadcaster import EventBroadcaster
from sensornet.stores.base import SensorStore

logger = logging.getLogger(__name__)

DEFAULT_STALE_THRESHOLD_MS = 60_000

class LivenessEngine:
    def __init__(
        self,
        store: SensorStore,
        stale_after: timedelta = timedelta(milliseconds=DEFAULT_STALE_THRESHOLD_MS),
        clock: Callable[[], datetime] = utcnow,
        broadcaster: Optional[EventBroadcaster] = None,
    ):
        self.store = store
        self.stale_after = stale_after
        self.clock = clock
        self.broadcaster = broadcaster

    def record_reading(self, sensor_id: str, temperature: float, humidity: float, pm25: float) -> ReadingResponse:
        """Store a reading for a registered sensor and mark it live"""
        if self.store.get_sensor(sensor_id) is None:
            raise NotFoundError(f"Sensor {sensor_id} not registered. Please register the sensor first.")

        reading = self.store.insert_reading(sensor_id, temperature, humidity, pm25, self.clock())
        self._publish({"type": "reading", **reading.model_dump(mode="json", by_alias=True)})
        self.set_connection(sensor_id, True)
        return reading

    def set_connection(self, sensor_id: str, connected: bool) -> Optional[ConnectionEventResponse]:
        """Returns the journaled event, or None when a live sensor was just refreshed"""
        now = self.clock()
        if connected:
            was_stale = self.store.mark_seen(sensor_id, now, now - self.stale_after)
            if not was_stale:
                return None
            event = self.store.insert_event(sensor_id, CONNECT, now)
            logger.info(f"Sensor {sensor_id} connected")
        else:
            self.store.mark_disconnected(sensor_id, now)
            event = self.store.insert_event(sensor_id, DISCONNECT, now)
            logger.info(f"Sensor {sensor_id} disconnected")

        self._publish({"type": "connection", **event.model_dump(mode="json", by_alias=True)})
        return event

    def _publish(self, event: dict) -> None:
        if self.broadcaster is not None:
            self.broadcaster.publish(event)
