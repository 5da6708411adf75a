"""Server-sent events framing for distribution channel listeners."""

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from waterstation.distribution.channel import DistributionChannel, QueueListener

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

PING_FRAME = ": ping\n\n"
KEEPALIVE_FRAME = ": keepalive\n\n"


def format_event(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event)}\n\n"


async def event_stream(
    channel: DistributionChannel,
    *,
    keepalive_interval: float = 15.0,
    queue_size: int = 1000,
) -> AsyncIterator[str]:
    """
    One listener's SSE frames.

    The ping comment goes out before attaching so proxies flush headers
    immediately. The listener is detached when the client goes away or
    the generator is closed.
    """
    yield PING_FRAME

    listener = QueueListener(maxsize=queue_size)
    subscription_id = await channel.attach(listener)
    try:
        while not listener.closed or not listener.queue.empty():
            try:
                event = await asyncio.wait_for(listener.get(), keepalive_interval)
            except asyncio.TimeoutError:
                yield KEEPALIVE_FRAME
                continue
            yield format_event(event)
        logger.warning(f"Listener {subscription_id} fell behind, closing stream")
    finally:
        listener.close()
        channel.detach(subscription_id)
