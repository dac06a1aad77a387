from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from typing import Optional
import logging

from sensornet.exceptions import SensorNetError
from sensornet.services.realtime import RealtimeChannel

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["realtime"])

@router.websocket("/ws")
async def realtime_channel(
    websocket: WebSocket,
    sensor_id: Optional[str] = Query(None, alias="sensorId"),
    name: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
):
    state = websocket.app.state
    await websocket.accept()

    channel = RealtimeChannel(websocket, sensor_id, state.engine, state.store, state.registry)
    await channel.open(name, latitude, longitude)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            try:
                if not await channel.handle(raw):
                    break
            except SensorNetError as e:
                # Malformed frames and readings for unknown sensors are dropped
                logger.debug(f"Dropped realtime frame from {sensor_id or 'anonymous'}: {e.message}")
    except WebSocketDisconnect:
        logger.debug(f"Realtime channel for {sensor_id or 'anonymous'} went away")
    finally:
        await channel.close()
