"""
Error kinds raised by the store, liveness and realtime layers.
Routes let them propagate; the handlers installed in main.py render
them as {"error": "..."} with the matching status code.
"""


class SensorNetError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SensorNetError):
    """Missing or malformed required field"""
    status_code = 400


class NotFoundError(SensorNetError):
    """Unknown sensor id"""
    status_code = 404


class BackendUnavailableError(SensorNetError):
    """Persistent store unreachable. Triggers failover to the memory store."""
    status_code = 503


class MalformedMessageError(SensorNetError):
    """Realtime frame that cannot be handled. Always dropped, never surfaced."""
    status_code = 400
