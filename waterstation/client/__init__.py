"""Downstream client: event stream reader, reconnection and tag mirror."""

from .mirror import ClientTagMirror
from .reconnect import ClientState, ReconnectionController
from .sse import iter_sse_data, sse_events

__all__ = [
    "ClientState",
    "ClientTagMirror",
    "ReconnectionController",
    "iter_sse_data",
    "sse_events",
]
