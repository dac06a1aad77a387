"""
Persistent store backed by any SQLAlchemy database (SQLite by default)
"""
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Callable, Iterator, List, Optional
import logging

from sqlalchemy import and_, or_
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Query, Session

from sensornet.database import Base, create_session_factory, utcnow
from sensornet.exceptions import BackendUnavailableError, NotFoundError, ValidationError
from sensornet.models import ConnectionEvent, EVENT_TYPES, Reading, Sensor
from sensornet.schemas import ConnectionEventResponse, ReadingResponse, SensorResponse
from sensornet.stores.base import Page, SensorStore, check_page, is_connected

logger = logging.getLogger(__name__)

# Errors that mean the database cannot be reached, as opposed to a bad statement
IO_ERRORS = (OperationalError, InterfaceError, PoolTimeoutError)

class SqlSensorStore(SensorStore):
    def __init__(self, engine: Engine, stale_after: timedelta, clock: Callable[[], datetime] = utcnow):
        self.engine = engine
        self.SessionLocal = create_session_factory(engine)
        self.stale_after = stale_after
        self.clock = clock

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self.SessionLocal()
        try:
            yield db
        except IO_ERRORS as e:
            raise BackendUnavailableError(f"Database unavailable: {e}") from e
        finally:
            db.close()

    def init_schema(self) -> None:
        try:
            Base.metadata.create_all(bind=self.engine)
        except IO_ERRORS as e:
            raise BackendUnavailableError(f"Database unavailable: {e}") from e

    def _to_sensor(self, row: Sensor) -> SensorResponse:
        return SensorResponse(
            id=row.sensor_id,
            name=row.name,
            latitude=row.latitude,
            longitude=row.longitude,
            is_connected=is_connected(row.last_seen, row.last_disconnected_at, self.clock(), self.stale_after),
            last_seen=row.last_seen,
            last_disconnected_at=row.last_disconnected_at,
            created_at=row.created_at,
        )

    # ---------- Sensors ----------
    def register_sensor(self, sensor_id: str, name: str, latitude: float, longitude: float) -> SensorResponse:
        with self._session() as db:
            sensor = db.query(Sensor).filter(Sensor.sensor_id == sensor_id).first()
            if not sensor:
                sensor = Sensor(
                    sensor_id=sensor_id,
                    name=name,
                    latitude=latitude,
                    longitude=longitude,
                    created_at=self.clock(),
                )
                db.add(sensor)
                try:
                    db.commit()
                except IntegrityError:
                    # Registered concurrently by another request; fall through to update
                    db.rollback()
                    sensor = db.query(Sensor).filter(Sensor.sensor_id == sensor_id).one()
            sensor.name = name
            sensor.latitude = latitude
            sensor.longitude = longitude
            db.commit()
            db.refresh(sensor)
            return self._to_sensor(sensor)

    def get_sensor(self, sensor_id: str) -> Optional[SensorResponse]:
        with self._session() as db:
            sensor = db.query(Sensor).filter(Sensor.sensor_id == sensor_id).first()
            return self._to_sensor(sensor) if sensor else None

    def list_sensors(self) -> List[SensorResponse]:
        with self._session() as db:
            sensors = db.query(Sensor).order_by(Sensor.name, Sensor.sensor_id).all()
            return [self._to_sensor(s) for s in sensors]

    def delete_sensor(self, sensor_id: str) -> bool:
        with self._session() as db:
            sensor = db.query(Sensor).filter(Sensor.sensor_id == sensor_id).first()
            if not sensor:
                return False
            db.query(Reading).filter(Reading.sensor_id == sensor_id).delete(synchronize_session=False)
            db.query(ConnectionEvent).filter(ConnectionEvent.sensor_id == sensor_id).delete(synchronize_session=False)
            db.delete(sensor)
            db.commit()
            logger.info(f"Deleted sensor {sensor_id} with its readings and events")
            return True

    def _require_sensor(self, db: Session, sensor_id: str) -> None:
        # SQLite does not enforce foreign keys unless asked to
        if db.query(Sensor.id).filter(Sensor.sensor_id == sensor_id).first() is None:
            raise NotFoundError(f"Sensor {sensor_id} not found")

    # ---------- Readings ----------
    def insert_reading(
        self,
        sensor_id: str,
        temperature: float,
        humidity: float,
        pm25: float,
        timestamp: datetime,
    ) -> ReadingResponse:
        with self._session() as db:
            self._require_sensor(db, sensor_id)
            reading = Reading(
                sensor_id=sensor_id,
                temperature=temperature,
                humidity=humidity,
                pm25=pm25,
                timestamp=timestamp,
            )
            db.add(reading)
            db.commit()
            db.refresh(reading)
            return ReadingResponse.model_validate(reading)

    def _readings(self, db: Session, sensor_id: str, start: Optional[datetime], end: Optional[datetime]) -> Query:
        q = db.query(Reading).filter(Reading.sensor_id == sensor_id)
        if start is not None:
            q = q.filter(Reading.timestamp >= start)
        if end is not None:
            q = q.filter(Reading.timestamp <= end)
        return q

    def query_readings_by_sensor(self, sensor_id: str, limit: Optional[int] = None) -> List[ReadingResponse]:
        with self._session() as db:
            q = self._readings(db, sensor_id, None, None).order_by(Reading.timestamp.desc(), Reading.id.desc())
            if limit:
                q = q.limit(limit)
            return [ReadingResponse.model_validate(r) for r in q.all()]

    def query_readings_by_range(
        self,
        sensor_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> List[ReadingResponse]:
        with self._session() as db:
            q = self._readings(db, sensor_id, start, end).order_by(Reading.timestamp.desc(), Reading.id.desc())
            return [ReadingResponse.model_validate(r) for r in q.all()]

    def query_readings_paginated(
        self,
        sensor_id: str,
        page: int,
        page_size: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ReadingResponse]:
        check_page(page, page_size)
        with self._session() as db:
            q = self._readings(db, sensor_id, start, end)
            total = q.count()
            rows = (
                q.order_by(Reading.timestamp.desc(), Reading.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return Page(items=[ReadingResponse.model_validate(r) for r in rows], total=total)

    # ---------- Connection events ----------
    def insert_event(self, sensor_id: str, event_type: str, timestamp: datetime) -> ConnectionEventResponse:
        if event_type not in EVENT_TYPES:
            raise ValidationError(f"Unknown event type: {event_type}")
        with self._session() as db:
            self._require_sensor(db, sensor_id)
            event = ConnectionEvent(sensor_id=sensor_id, event_type=event_type, timestamp=timestamp)
            db.add(event)
            db.commit()
            db.refresh(event)
            return ConnectionEventResponse.model_validate(event)

    def _events(
        self,
        db: Session,
        sensor_id: Optional[str],
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> Query:
        q = db.query(ConnectionEvent)
        if sensor_id is not None:
            q = q.filter(ConnectionEvent.sensor_id == sensor_id)
        if start is not None:
            q = q.filter(ConnectionEvent.timestamp >= start)
        if end is not None:
            q = q.filter(ConnectionEvent.timestamp <= end)
        return q

    def query_events(
        self,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[ConnectionEventResponse]:
        with self._session() as db:
            q = self._events(db, sensor_id, start, end)
            rows = q.order_by(ConnectionEvent.timestamp.desc(), ConnectionEvent.id.desc()).all()
            return [ConnectionEventResponse.model_validate(e) for e in rows]

    def query_events_paginated(
        self,
        page: int,
        page_size: int,
        sensor_id: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Page[ConnectionEventResponse]:
        check_page(page, page_size)
        with self._session() as db:
            q = self._events(db, sensor_id, start, end)
            total = q.count()
            rows = (
                q.order_by(ConnectionEvent.timestamp.desc(), ConnectionEvent.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return Page(items=[ConnectionEventResponse.model_validate(e) for e in rows], total=total)

    # ---------- Liveness ----------
    def mark_seen(self, sensor_id: str, seen_at: datetime, stale_before: datetime) -> bool:
        was_stale = or_(
            Sensor.last_seen.is_(None),
            Sensor.last_seen <= stale_before,
            and_(
                Sensor.last_disconnected_at.isnot(None),
                Sensor.last_disconnected_at >= Sensor.last_seen,
            ),
        )
        with self._session() as db:
            # Conditional update: only one concurrent caller can flip a stale sensor to live
            updated = (
                db.query(Sensor)
                .filter(Sensor.sensor_id == sensor_id, was_stale)
                .update({Sensor.last_seen: seen_at}, synchronize_session=False)
            )
            if updated:
                db.commit()
                return True

            updated = (
                db.query(Sensor)
                .filter(Sensor.sensor_id == sensor_id)
                .update({Sensor.last_seen: seen_at}, synchronize_session=False)
            )
            db.commit()
            if not updated:
                raise NotFoundError(f"Sensor {sensor_id} not found")
            return False

    def mark_disconnected(self, sensor_id: str, at: datetime) -> None:
        with self._session() as db:
            updated = (
                db.query(Sensor)
                .filter(Sensor.sensor_id == sensor_id)
                .update({Sensor.last_disconnected_at: at}, synchronize_session=False)
            )
            db.commit()
            if not updated:
                raise NotFoundError(f"Sensor {sensor_id} not found")
