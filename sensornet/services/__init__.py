from .broadcaster import EventBroadcaster
from .liveness import LivenessEngine, DEFAULT_STALE_THRESHOLD_MS
from .realtime import ConnectionRegistry, RealtimeChannel

__all__ = [
    "EventBroadcaster",
    "LivenessEngine",
    "DEFAULT_STALE_THRESHOLD_MS",
    "ConnectionRegistry",
    "RealtimeChannel"
]
