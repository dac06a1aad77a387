from sensornet.database import Base
from .sensor import Sensor, Reading
from .event import ConnectionEvent, CONNECT, DISCONNECT, EVENT_TYPES

__all__ = [
    "Base",
    "Sensor",
    "Reading",
    "ConnectionEvent",
    "CONNECT",
    "DISCONNECT",
    "EVENT_TYPES"
]
