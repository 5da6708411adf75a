"""Server-sent events reader over httpx."""

import json
import logging
from typing import Any, AsyncIterable, AsyncIterator

import httpx

logger = logging.getLogger(__name__)


def _decode(data_lines: list[str]) -> dict[str, Any] | None:
    payload = "\n".join(data_lines)
    try:
        return json.loads(payload)
    except json.JSONDecodeError:
        logger.warning(f"Ignoring malformed event payload: {payload!r}")
        return None


async def iter_sse_data(lines: AsyncIterable[str]) -> AsyncIterator[dict[str, Any]]:
    """Decode the JSON payload of each SSE event. Comment lines are skipped."""
    data_lines: list[str] = []
    async for line in lines:
        if not line:
            if data_lines:
                event = _decode(data_lines)
                data_lines = []
                if event is not None:
                    yield event
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "data":
            data_lines.append(value)

    if data_lines:
        event = _decode(data_lines)
        if event is not None:
            yield event


async def sse_events(
    client: httpx.AsyncClient,
    url: str,
    params: dict[str, str] | None = None,
) -> AsyncIterator[dict[str, Any]]:
    """Open an event stream and yield decoded events until the server closes it."""
    async with client.stream(
        "GET", url, params=params, headers={"Accept": "text/event-stream"}
    ) as response:
        response.raise_for_status()
        async for event in iter_sse_data(response.aiter_lines()):
            yield event
