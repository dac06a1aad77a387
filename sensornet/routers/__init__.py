from .health import router as health_router
from .sensors import router as sensors_router
from .events import router as events_router
from .realtime import router as realtime_router

__all__ = [
    "health_router",
    "sensors_router",
    "events_router",
    "realtime_router"
]
