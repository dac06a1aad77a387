# sensornet/main.py
from datetime import datetime, timedelta
from typing import Callable, Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from sensornet.database import Settings, create_db_engine, settings as default_settings, utcnow
from sensornet.exceptions import BackendUnavailableError, SensorNetError
from sensornet.services.broadcaster import EventBroadcaster
from sensornet.services.liveness import LivenessEngine
from sensornet.services.realtime import ConnectionRegistry
from sensornet.services.scheduler import create_scheduler, start_scheduler, stop_scheduler
from sensornet.stores import FailoverStore, MemorySensorStore, SqlSensorStore

# Routers
from sensornet.routers import health_router, sensors_router, events_router, realtime_router

logger = logging.getLogger(__name__)


def _describe_validation_error(exc: RequestValidationError) -> str:
    fields = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        fields.append(f"{'.'.join(loc) or 'body'}: {err.get('msg')}")
    return "Invalid request: " + "; ".join(fields)


def create_app(settings: Optional[Settings] = None, clock: Optional[Callable[[], datetime]] = None) -> FastAPI:
    settings = settings or default_settings
    clock = clock or utcnow

    logging.basicConfig(level=settings.log_level.upper())
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)

    app = FastAPI(
        title=settings.app_name,
        description="Environmental sensor monitoring: ingestion, liveness and connection journal",
        version="1.0.0",
        debug=settings.debug,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list(),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # One store, registry and broadcaster per process, owned by this app
    stale_after = timedelta(milliseconds=settings.stale_threshold_ms)
    store = FailoverStore(
        primary=SqlSensorStore(create_db_engine(settings), stale_after, clock=clock),
        fallback=MemorySensorStore(
            stale_after,
            max_readings=settings.fallback_max_readings,
            max_events=settings.fallback_max_events,
            clock=clock,
        ),
    )
    broadcaster = EventBroadcaster()
    app.state.settings = settings
    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.registry = ConnectionRegistry()
    app.state.engine = LivenessEngine(store, stale_after, clock=clock, broadcaster=broadcaster)
    app.state.scheduler = create_scheduler(store, settings, clock=clock)

    @app.exception_handler(SensorNetError)
    async def sensornet_error_handler(request: Request, exc: SensorNetError):
        if isinstance(exc, BackendUnavailableError):
            logger.error(f"Both stores failed on {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": _describe_validation_error(exc)})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    # Mount router
    app.include_router(health_router)       # /healthz, /api/health
    app.include_router(sensors_router)      # /api/sensors/...
    app.include_router(events_router)       # /api/events/, /api/events/stream
    app.include_router(realtime_router)     # /api/ws

    @app.on_event("startup")
    async def _startup():
        # A failure here latches the in-memory fallback for the process lifetime
        store.init_schema()
        logger.info(f"Serving from {store.backend} store")
        if settings.enable_scheduler:
            start_scheduler(app.state.scheduler)

    @app.on_event("shutdown")
    async def _shutdown():
        stop_scheduler(app.state.scheduler)

    return app


app = create_app()
