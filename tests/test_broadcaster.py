import asyncio
import json

from sensornet.services.broadcaster import EventBroadcaster


def test_publish_reaches_subscriber():
    broadcaster = EventBroadcaster()

    async def scenario():
        queue = broadcaster.subscribe()
        broadcaster.publish({"type": "reading", "sensorId": "S1"})
        return await asyncio.wait_for(queue.get(), timeout=1)

    assert asyncio.run(scenario()) == {"type": "reading", "sensorId": "S1"}


def test_publish_from_worker_thread():
    broadcaster = EventBroadcaster()

    async def scenario():
        queue = broadcaster.subscribe()
        await asyncio.to_thread(broadcaster.publish, {"type": "connection"})
        return await asyncio.wait_for(queue.get(), timeout=1)

    assert asyncio.run(scenario())["type"] == "connection"


def test_publish_without_subscribers_is_a_no_op():
    broadcaster = EventBroadcaster()
    broadcaster.publish({"type": "reading"})
    assert broadcaster.subscriber_count == 0


def test_unsubscribed_queue_gets_nothing():
    broadcaster = EventBroadcaster()

    async def scenario():
        kept = broadcaster.subscribe()
        dropped = broadcaster.subscribe()
        broadcaster.unsubscribe(dropped)
        broadcaster.publish({"type": "reading"})
        await asyncio.wait_for(kept.get(), timeout=1)
        return dropped.empty()

    assert asyncio.run(scenario()) is True
    assert broadcaster.subscriber_count == 1


def test_stream_formats_server_sent_events():
    broadcaster = EventBroadcaster()

    async def scenario():
        stream = broadcaster.stream()
        pending = asyncio.ensure_future(stream.__anext__())
        # Let the generator subscribe before publishing
        while broadcaster.subscriber_count == 0:
            await asyncio.sleep(0)
        broadcaster.publish({"type": "reading", "pm25": 4.0})
        chunk = await asyncio.wait_for(pending, timeout=1)
        await stream.aclose()
        return chunk

    chunk = asyncio.run(scenario())
    assert chunk.startswith("data: ")
    assert chunk.endswith("\n\n")
    assert json.loads(chunk[len("data: "):]) == {"type": "reading", "pm25": 4.0}
    assert broadcaster.subscriber_count == 0
