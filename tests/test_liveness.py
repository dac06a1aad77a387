"""Tests for connection liveness inference and the connect/disconnect journal."""

import threading
from datetime import datetime, timedelta

import pytest

from sensornet.exceptions import NotFoundError
from sensornet.stores import is_connected
from conftest import STALE


def _events(store, sensor_id, event_type):
    return [e for e in store.query_events(sensor_id) if e.event_type == event_type]


@pytest.fixture
def sensor(store):
    store.register_sensor("SENSOR_A", "Sensor A", 7.0, -72.0)
    return "SENSOR_A"


class TestConnectCoalescing:
    """A burst of readings is one logical connection."""

    def test_burst_below_threshold_logs_single_connect(self, engine, store, sensor, clock):
        for _ in range(6):
            engine.record_reading(sensor, 22.5, 55.0, 10.0)
            clock.advance(seconds=10)

        assert len(_events(store, sensor, "connect")) == 1

    def test_gap_at_threshold_logs_second_connect(self, engine, store, sensor, clock):
        engine.record_reading(sensor, 22.5, 55.0, 10.0)
        clock.advance(milliseconds=60000)
        engine.record_reading(sensor, 22.6, 55.1, 10.1)

        assert len(_events(store, sensor, "connect")) == 2

    def test_gap_just_below_threshold_is_coalesced(self, engine, store, sensor, clock):
        engine.record_reading(sensor, 22.5, 55.0, 10.0)
        clock.advance(milliseconds=59999)
        engine.record_reading(sensor, 22.6, 55.1, 10.1)

        assert len(_events(store, sensor, "connect")) == 1

    def test_set_connection_returns_event_only_on_transition(self, engine, sensor):
        first = engine.set_connection(sensor, True)
        second = engine.set_connection(sensor, True)

        assert first is not None and first.event_type == "connect"
        assert second is None

    def test_registration_alone_logs_nothing(self, store, sensor):
        assert store.query_events(sensor) == []
        assert store.get_sensor(sensor).is_connected is False


class TestExplicitDisconnect:

    def test_every_disconnect_is_logged(self, engine, store, sensor):
        engine.set_connection(sensor, False)
        engine.set_connection(sensor, False)

        assert len(_events(store, sensor, "disconnect")) == 2

    def test_disconnect_marks_sensor_offline(self, engine, store, sensor):
        engine.record_reading(sensor, 20.0, 50.0, 5.0)
        engine.set_connection(sensor, False)

        assert store.get_sensor(sensor).is_connected is False

    def test_reading_after_disconnect_logs_new_connect(self, engine, store, sensor, clock):
        engine.record_reading(sensor, 20.0, 50.0, 5.0)
        engine.set_connection(sensor, False)
        clock.advance(seconds=1)
        engine.record_reading(sensor, 20.1, 50.1, 5.1)

        assert len(_events(store, sensor, "connect")) == 2
        assert store.get_sensor(sensor).is_connected is True


class TestUnknownSensor:

    def test_reading_for_unregistered_sensor_is_rejected(self, engine, store):
        with pytest.raises(NotFoundError):
            engine.record_reading("GHOST", 20.0, 50.0, 5.0)

        assert store.query_readings_by_sensor("GHOST") == []
        assert store.query_events("GHOST") == []

    @pytest.mark.parametrize("connected", [True, False])
    def test_set_connection_for_unknown_sensor(self, engine, store, connected):
        with pytest.raises(NotFoundError):
            engine.set_connection("GHOST", connected)
        assert store.query_events("GHOST") == []


def test_register_read_and_go_stale_scenario(engine, store, clock):
    store.register_sensor("SENSOR_A", "Sensor A", 7.0, -72.0)
    submitted_at = clock()
    engine.record_reading("SENSOR_A", 22.5, 55.0, 10.0)

    sensor = store.get_sensor("SENSOR_A")
    last = store.query_readings_by_sensor("SENSOR_A", limit=1)[0]
    assert sensor.is_connected is True
    assert last.pm25 == pytest.approx(10.0)
    assert last.temperature == pytest.approx(22.5)
    assert last.humidity == pytest.approx(55.0)
    assert last.timestamp >= submitted_at

    clock.advance(milliseconds=60001)
    assert store.get_sensor("SENSOR_A").is_connected is False

    engine.record_reading("SENSOR_A", 22.0, 54.0, 9.0)
    assert len(_events(store, "SENSOR_A", "connect")) == 2


def test_concurrent_contacts_log_one_connect(engine, store, sensor):
    barrier = threading.Barrier(8)

    def contact():
        barrier.wait()
        engine.set_connection(sensor, True)

    threads = [threading.Thread(target=contact) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(_events(store, sensor, "connect")) == 1


def test_engine_publishes_readings_and_transitions(engine, sensor, recorder):
    engine.record_reading(sensor, 22.5, 55.0, 10.0)
    engine.record_reading(sensor, 22.5, 55.0, 10.0)

    types = [e["type"] for e in recorder.events]
    assert types == ["reading", "connection", "reading"]
    assert recorder.events[0]["sensorId"] == sensor
    assert recorder.events[1]["eventType"] == "connect"


class TestIsConnected:
    now = datetime(2026, 1, 1, 12, 0, 0)

    def test_never_seen(self):
        assert is_connected(None, None, self.now, STALE) is False

    def test_recent_contact(self):
        assert is_connected(self.now - timedelta(seconds=59), None, self.now, STALE) is True

    def test_stale_contact(self):
        assert is_connected(self.now - timedelta(seconds=60), None, self.now, STALE) is False

    def test_disconnect_after_contact(self):
        seen = self.now - timedelta(seconds=5)
        assert is_connected(seen, seen + timedelta(seconds=1), self.now, STALE) is False

    def test_contact_after_disconnect(self):
        seen = self.now - timedelta(seconds=5)
        assert is_connected(seen, seen - timedelta(seconds=1), self.now, STALE) is True
