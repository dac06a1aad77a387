"""
Realtime fan-out over WebSocket channels.

Devices and dashboard viewers open a channel tagged with a sensor id.
Readings arriving on a channel are persisted, acknowledged, and forwarded
to whichever other channel is registered under the same id. Delivery is
best-effort: no retry, no backpressure, no ordering across channels.
"""
from typing import Any, Dict, Optional
import json
import logging
import time

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PydanticValidationError
from starlette.concurrency import run_in_threadpool

from sensornet.exceptions import MalformedMessageError, NotFoundError, SensorNetError
from sensornet.schemas import ReadingCreate, SensorRegister
from sensornet.services.liveness import LivenessEngine
from sensornet.stores.base import SensorStore

logger = logging.getLogger(__name__)

MESSAGE_TYPES = ("reading", "ping", "disconnect")

def epoch_ms() -> int:
    return int(time.time() * 1000)

class ConnectionRegistry:
    """At most one channel per sensor id; the latest registration wins"""

    def __init__(self):
        self._channels: Dict[str, Any] = {}

    def register(self, sensor_id: str, channel: Any) -> None:
        previous = self._channels.get(sensor_id)
        if previous is not None and previous is not channel:
            # The replaced channel stays open, it just stops receiving forwards
            logger.debug(f"Channel for {sensor_id} replaced by a newer connection")
        self._channels[sensor_id] = channel

    def unregister(self, sensor_id: str, channel: Any) -> bool:
        if self._channels.get(sensor_id) is channel:
            del self._channels[sensor_id]
            return True
        return False

    def get(self, sensor_id: str) -> Optional[Any]:
        return self._channels.get(sensor_id)

    def __contains__(self, sensor_id: str) -> bool:
        return sensor_id in self._channels

    def __len__(self) -> int:
        return len(self._channels)

def parse_message(raw: str) -> Dict[str, Any]:
    try:
        msg = json.loads(raw)
    except ValueError as e:
        raise MalformedMessageError(f"Invalid JSON: {e}") from e
    if not isinstance(msg, dict) or msg.get("type") not in MESSAGE_TYPES:
        raise MalformedMessageError("Unsupported message type")
    return msg

def parse_reading(msg: Dict[str, Any], default_sensor_id: Optional[str]) -> ReadingCreate:
    payload = {
        "sensorId": msg.get("sensorId") or default_sensor_id,
        "temperature": msg.get("temperature"),
        "humidity": msg.get("humidity"),
        "pm25": msg.get("pm25"),
    }
    try:
        return ReadingCreate.model_validate(payload)
    except PydanticValidationError as e:
        raise MalformedMessageError(f"Invalid reading: {e.error_count()} field error(s)") from e

class RealtimeChannel:
    """One open WebSocket, optionally bound to a sensor id"""

    def __init__(
        self,
        websocket: WebSocket,
        sensor_id: Optional[str],
        engine: LivenessEngine,
        store: SensorStore,
        registry: ConnectionRegistry,
    ):
        self.websocket = websocket
        self.sensor_id = sensor_id
        self.engine = engine
        self.store = store
        self.registry = registry
        self.disconnected = False

    async def open(self, name: Optional[str], latitude: Optional[float], longitude: Optional[float]) -> None:
        if not self.sensor_id:
            return

        if name and latitude is not None and longitude is not None:
            await self._register(name, latitude, longitude)

        self.registry.register(self.sensor_id, self.websocket)
        try:
            await run_in_threadpool(self.engine.set_connection, self.sensor_id, True)
        except NotFoundError:
            logger.debug(f"Realtime channel opened for unregistered sensor {self.sensor_id}")
        except SensorNetError as e:
            logger.warning(f"Could not mark {self.sensor_id} connected: {e.message}")

    async def _register(self, name: str, latitude: float, longitude: float) -> None:
        try:
            info = SensorRegister.model_validate(
                {"id": self.sensor_id, "name": name, "latitude": latitude, "longitude": longitude}
            )
        except PydanticValidationError as e:
            logger.warning(f"Ignoring invalid registration for {self.sensor_id}: {e.error_count()} field error(s)")
            return
        try:
            await run_in_threadpool(self.store.register_sensor, info.id, info.name, info.latitude, info.longitude)
        except SensorNetError as e:
            logger.warning(f"Could not register {self.sensor_id} from realtime channel: {e.message}")

    async def handle(self, raw: str) -> bool:
        """Process one inbound frame. Returns False once the channel was closed."""
        msg = parse_message(raw)

        if msg["type"] == "ping":
            await self.websocket.send_json({"type": "pong", "ts": epoch_ms()})
            return True

        if msg["type"] == "disconnect":
            if not self.sensor_id:
                return True
            await run_in_threadpool(self.engine.set_connection, self.sensor_id, False)
            self.disconnected = True
            await self.websocket.close(code=1000, reason="disconnect")
            return False

        reading = parse_reading(msg, self.sensor_id)
        stored = await run_in_threadpool(
            self.engine.record_reading,
            reading.sensor_id,
            reading.temperature,
            reading.humidity,
            reading.pm25,
        )
        await self.websocket.send_json({"type": "ack", "ts": epoch_ms()})

        target = self.registry.get(stored.sensor_id)
        if target is not None and target is not self.websocket:
            try:
                await target.send_json({
                    "type": "reading:update",
                    "sensorId": stored.sensor_id,
                    "temperature": stored.temperature,
                    "humidity": stored.humidity,
                    "pm25": stored.pm25,
                })
            except (RuntimeError, WebSocketDisconnect) as e:
                logger.debug(f"Forward to {stored.sensor_id} listener failed: {e}")
        return True

    async def close(self) -> None:
        if not self.sensor_id:
            return
        self.registry.unregister(self.sensor_id, self.websocket)
        if self.disconnected:
            return
        try:
            await run_in_threadpool(self.engine.set_connection, self.sensor_id, False)
        except NotFoundError:
            logger.debug(f"Realtime channel closed for unregistered sensor {self.sensor_id}")
        except SensorNetError as e:
            logger.warning(f"Could not record disconnect for {self.sensor_id}: {e.message}")
