import asyncio
import json
import logging
import time
from typing import AsyncIterator

from dinebill.realtime.kds import KdsBus, KdsEvent

logger = logging.getLogger("dinebill.kds.stream")


def sse_frame(event: str, data) -> str:
    return f"event: {event}\ndata: {json.dumps(data, separators=(',', ':'))}\n\n"


class KitchenStream:
    """One kitchen display connection.

    Yields server-sent-event frames: ``HELLO`` first, then every bus event for
    ``tenant_id`` as it happens, plus a ``PING`` every ``ping_interval``
    seconds on a fixed schedule that events do not reset. Bus callbacks may
    fire on any thread, so frames are handed to the loop with
    ``call_soon_threadsafe``. Closing or cancelling the generator drops the
    bus subscription and the heartbeat together.
    """

    def __init__(self, bus: KdsBus, tenant_id: str, ping_interval: float = 15.0):
        self.bus = bus
        self.tenant_id = tenant_id
        self.ping_interval = ping_interval

    async def frames(self) -> AsyncIterator[str]:
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue[str] = asyncio.Queue()

        def forward(event: KdsEvent) -> None:
            if event.tenant_id != self.tenant_id:
                return
            loop.call_soon_threadsafe(queue.put_nowait, sse_frame(event.type, event.payload()))

        unsubscribe = self.bus.subscribe(forward)
        logger.info("kitchen display connected tenant=%s", self.tenant_id)
        try:
            yield sse_frame("HELLO", {"type": "HELLO", "tenantId": self.tenant_id})
            next_ping = loop.time() + self.ping_interval
            while True:
                timeout = max(0.0, next_ping - loop.time())
                try:
                    frame = await asyncio.wait_for(queue.get(), timeout=timeout)
                except asyncio.TimeoutError:
                    next_ping += self.ping_interval
                    frame = sse_frame("PING", int(time.time() * 1000))
                yield frame
        finally:
            unsubscribe()
            logger.info("kitchen display disconnected tenant=%s", self.tenant_id)
