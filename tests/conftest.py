"""Pytest configuration and fixtures for test suite."""

from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from sensornet.database import Settings, create_db_engine
from sensornet.main import create_app
from sensornet.services.liveness import LivenessEngine
from sensornet.stores import MemorySensorStore, SqlSensorStore

STALE = timedelta(milliseconds=60000)


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2026, 1, 1, 12, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class EventRecorder:
    """Stands in for the broadcaster and keeps everything published."""

    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(database_url=f"sqlite:///{tmp_path / 'sensornet-test.db'}", enable_scheduler=False)


@pytest.fixture
def sql_store(settings, clock):
    store = SqlSensorStore(create_db_engine(settings), STALE, clock=clock)
    store.init_schema()
    return store


@pytest.fixture
def memory_store(clock):
    return MemorySensorStore(STALE, clock=clock)


@pytest.fixture(params=["sql", "memory"])
def store(request):
    """Each store-contract test runs against both backends."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def engine(store, clock, recorder):
    return LivenessEngine(store, STALE, clock=clock, broadcaster=recorder)


@pytest.fixture
def app(settings, clock):
    return create_app(settings, clock=clock)


@pytest.fixture
def client(app):
    # Entering the context runs startup, which creates the schema
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def registered(client):
    """Register SENSOR_A through the API and return its id."""
    response = client.post(
        "/api/sensors/register",
        json={"id": "SENSOR_A", "name": "Sensor A", "latitude": 7.0, "longitude": -72.0},
    )
    assert response.status_code == 200
    return "SENSOR_A"
