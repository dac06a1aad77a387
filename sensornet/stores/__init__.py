from .base import Page, SensorStore, is_connected
from .sql_store import SqlSensorStore
from .memory_store import MemorySensorStore
from .failover import FailoverStore

__all__ = [
    "Page",
    "SensorStore",
    "is_connected",
    "SqlSensorStore",
    "MemorySensorStore",
    "FailoverStore"
]
