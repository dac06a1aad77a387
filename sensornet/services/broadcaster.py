import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, Optional, Set

logger = logging.getLogger(__name__)

class EventBroadcaster:
    """Fans out reading and connection updates to SSE subscribers.

    publish() may be called from threadpool workers; delivery is handed
    to the event loop that owns the subscriber queues.
    """

    def __init__(self):
        self._subscribers: Set[asyncio.Queue] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def subscribe(self) -> asyncio.Queue:
        self._loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, event: Dict[str, Any]) -> None:
        if not self._subscribers or self._loop is None or self._loop.is_closed():
            return
        for q in list(self._subscribers):
            try:
                self._loop.call_soon_threadsafe(q.put_nowait, event)
            except RuntimeError as e:
                # Loop shut down between the check and the call
                logger.debug(f"Dropping event for closed subscriber loop: {e}")

    async def stream(self) -> AsyncIterator[str]:
        queue = self.subscribe()
        try:
            while True:
                data = await queue.get()
                yield f"data: {json.dumps(data)}\n\n"
        finally:
            self.unsubscribe(queue)
