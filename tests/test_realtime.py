"""Tests for the WebSocket channel: registry, framing, acks and forwarding."""

import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from sensornet.exceptions import MalformedMessageError
from sensornet.services.liveness import LivenessEngine
from sensornet.services.realtime import ConnectionRegistry, RealtimeChannel, parse_message, parse_reading
from conftest import STALE

READING = {"type": "reading", "temperature": 22.5, "humidity": 55.0, "pm25": 10.0}


class FakeSocket:
    def __init__(self):
        self.sent = []
        self.closed_with = None

    async def send_json(self, data):
        self.sent.append(data)

    async def close(self, code=1000, reason=None):
        self.closed_with = code


class TestConnectionRegistry:

    def test_latest_registration_wins(self):
        registry = ConnectionRegistry()
        first, second = object(), object()
        registry.register("S1", first)
        registry.register("S1", second)

        assert registry.get("S1") is second
        assert len(registry) == 1

    def test_stale_unregister_keeps_newer_channel(self):
        registry = ConnectionRegistry()
        first, second = object(), object()
        registry.register("S1", first)
        registry.register("S1", second)

        assert registry.unregister("S1", first) is False
        assert "S1" in registry
        assert registry.unregister("S1", second) is True
        assert "S1" not in registry


class TestParsing:

    @pytest.mark.parametrize("raw", ["not json", "[1, 2]", '{"type": "launch"}', "{}"])
    def test_malformed_frames(self, raw):
        with pytest.raises(MalformedMessageError):
            parse_message(raw)

    def test_reading_falls_back_to_channel_sensor(self):
        reading = parse_reading(READING, "S1")
        assert reading.sensor_id == "S1"
        assert reading.pm25 == 10.0

    def test_reading_with_bad_value(self):
        with pytest.raises(MalformedMessageError):
            parse_reading({**READING, "humidity": "wet"}, "S1")


def test_reading_is_not_forwarded_to_its_own_channel(memory_store, clock, recorder):
    memory_store.register_sensor("S1", "Alpha", 0.0, 0.0)
    engine = LivenessEngine(memory_store, STALE, clock=clock, broadcaster=recorder)
    registry = ConnectionRegistry()
    socket = FakeSocket()
    channel = RealtimeChannel(socket, "S1", engine, memory_store, registry)

    async def scenario():
        await channel.open(None, None, None)
        assert await channel.handle('{"type": "reading", "temperature": 20, "humidity": 40, "pm25": 3}')

    asyncio.run(scenario())

    assert [m["type"] for m in socket.sent] == ["ack"]
    assert len(memory_store.query_readings_by_sensor("S1")) == 1


def test_disconnect_frame_closes_channel_once(memory_store, clock, recorder):
    memory_store.register_sensor("S1", "Alpha", 0.0, 0.0)
    engine = LivenessEngine(memory_store, STALE, clock=clock, broadcaster=recorder)
    registry = ConnectionRegistry()
    socket = FakeSocket()
    channel = RealtimeChannel(socket, "S1", engine, memory_store, registry)

    async def scenario():
        await channel.open(None, None, None)
        assert await channel.handle('{"type": "disconnect"}') is False
        await channel.close()

    asyncio.run(scenario())

    assert socket.closed_with == 1000
    assert len(registry) == 0
    types = [e.event_type for e in memory_store.query_events("S1")]
    assert types.count("disconnect") == 1


class TestWebSocketEndpoint:

    def test_ping_pong(self, client):
        with client.websocket_connect("/api/ws") as ws:
            ws.send_json({"type": "ping"})
            reply = ws.receive_json()
            assert reply["type"] == "pong"
            assert isinstance(reply["ts"], int)

    def test_query_params_register_the_sensor(self, client):
        url = "/api/ws?sensorId=SENSOR_Z&name=Roof&latitude=7.5&longitude=-72.5"
        with client.websocket_connect(url) as ws:
            ws.send_json({"type": "ping"})
            ws.receive_json()

            sensor = client.get("/api/sensors/SENSOR_Z").json()["sensor"]
            assert sensor["name"] == "Roof"
            assert sensor["isConnected"] is True

    def test_out_of_range_location_is_not_registered(self, client):
        url = "/api/ws?sensorId=SENSOR_Z&name=Roof&latitude=999&longitude=-72.5"
        with client.websocket_connect(url) as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

            assert client.get("/api/sensors/SENSOR_Z").status_code == 404

    def test_reading_is_acknowledged_and_stored(self, client, registered):
        with client.websocket_connect(f"/api/ws?sensorId={registered}") as ws:
            ws.send_json(READING)
            assert ws.receive_json()["type"] == "ack"

        readings = client.get(f"/api/sensors/{registered}/readings").json()["readings"]
        assert len(readings) == 1
        assert readings[0]["temperature"] == 22.5

    def test_malformed_frame_is_ignored(self, client):
        with client.websocket_connect("/api/ws") as ws:
            ws.send_text("definitely not json")
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_reading_for_unknown_sensor_is_dropped(self, client):
        with client.websocket_connect("/api/ws") as ws:
            ws.send_json({**READING, "sensorId": "GHOST"})
            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"

    def test_reading_is_forwarded_to_listener(self, client, registered):
        with client.websocket_connect("/api/ws") as device:
            with client.websocket_connect(f"/api/ws?sensorId={registered}") as viewer:
                # The pong proves the viewer is registered before the device sends
                viewer.send_json({"type": "ping"})
                assert viewer.receive_json()["type"] == "pong"

                device.send_json({**READING, "sensorId": registered})
                assert device.receive_json()["type"] == "ack"

                update = viewer.receive_json()
                assert update == {
                    "type": "reading:update",
                    "sensorId": registered,
                    "temperature": 22.5,
                    "humidity": 55.0,
                    "pm25": 10.0,
                }

    def test_disconnect_message_logs_one_disconnect(self, client, registered):
        with client.websocket_connect(f"/api/ws?sensorId={registered}") as ws:
            ws.send_json({"type": "disconnect"})
            with pytest.raises(WebSocketDisconnect):
                ws.receive_json()

        events = client.get(f"/api/sensors/{registered}/events").json()["events"]
        assert [e["eventType"] for e in events] == ["disconnect", "connect"]

    def test_closing_socket_logs_disconnect(self, client, app, registered):
        with client.websocket_connect(f"/api/ws?sensorId={registered}") as ws:
            ws.send_json({"type": "ping"})
            ws.receive_json()
            assert registered in app.state.registry

        assert len(app.state.registry) == 0
        events = client.get(f"/api/sensors/{registered}/events").json()["events"]
        assert [e["eventType"] for e in events] == ["disconnect", "connect"]
