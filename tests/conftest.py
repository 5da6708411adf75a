# tests/conftest.py
import asyncio
from typing import Any

import pytest

from waterstation.distribution.channel import DistributionChannel
from waterstation.session.base_session import BaseSession, TypedValue, WriteResult
from waterstation.session.manager import SessionManager
from waterstation.state.tag_store import TagValueStore
from waterstation.subscription.engine import SubscriptionEngine
from waterstation.tags.registry import get_default_registry

CONTROLLER_VALUES = {
    "ns=4;s=ARU": False,
    "ns=4;s=AUT": True,
    "ns=4;s=BPpompe": False,
    "ns=4;s=BPvanne": True,
    "ns=4;s=REA": False,
    "ns=4;s=arret": False,
    "ns=4;s=marche": True,
    "ns=4;s=niveau": 42,
    "ns=4;s=pompe": False,
    "ns=4;s=vanne": True,
}


def pytest_collection_modifyitems(config, items):
    """Run OPC UA server tests first, in first/second/third order."""
    marker_priority = {"first": 0, "second": 1, "third": 2}

    def get_priority(item):
        if item.get_closest_marker("opcua") is None:
            return (1, 0)
        for name, priority in marker_priority.items():
            if item.get_closest_marker(name) is not None:
                return (0, priority)
        return (0, len(marker_priority))

    items.sort(key=get_priority)


# ================================================================
# IN-MEMORY CONTROLLER
# ================================================================
class FakeSession(BaseSession):
    """In-memory session primitive with switchable failures."""

    def __init__(self, values: dict[str, Any] | None = None):
        self.values = dict(CONTROLLER_VALUES if values is None else values)
        self.calls: list[str] = []
        self.endpoint: str | None = None
        self.connected = False
        self.session_open = False
        self.subscribed = False
        self.callbacks: dict[str, Any] = {}
        self.written: list[tuple[str, TypedValue]] = []

        self.connect_delay = 0.0
        self.fail_connect: Exception | None = None
        self.fail_subscription: Exception | None = None
        self.fail_monitor: set[str] = set()
        self.fail_read: set[str] = set()
        self.fail_check: Exception | None = None
        self.fail_write: Exception | None = None
        self.fail_teardown: Exception | None = None
        self.write_status: str | None = None

    async def connect(self, endpoint):
        self.calls.append("connect")
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail_connect is not None:
            raise self.fail_connect
        self.connected = True
        self.endpoint = endpoint

    async def disconnect(self):
        self.calls.append("disconnect")
        self.connected = False
        self.endpoint = None

    async def create_session(self):
        self.calls.append("create_session")
        if not self.connected:
            raise RuntimeError("Client not connected")
        self.session_open = True

    async def close_session(self):
        self.calls.append("close_session")
        self.session_open = False
        if self.fail_teardown is not None:
            raise self.fail_teardown

    async def check_connection(self):
        if self.fail_check is not None:
            raise self.fail_check

    async def create_subscription(self, params):
        self.calls.append("create_subscription")
        if self.fail_subscription is not None:
            raise self.fail_subscription
        self.subscribed = True

    async def monitor_item(self, address, params, on_change):
        if address in self.fail_monitor:
            raise RuntimeError(f"BadNodeIdUnknown: {address}")
        self.callbacks[address] = on_change
        return len(self.callbacks)

    async def terminate_subscription(self):
        self.calls.append("terminate_subscription")
        self.subscribed = False
        self.callbacks.clear()

    async def read(self, address):
        if address in self.fail_read:
            raise RuntimeError(f"BadNotReadable: {address}")
        return self.values.get(address)

    async def write(self, address, value):
        self.calls.append("write")
        if self.fail_write is not None:
            raise self.fail_write
        if self.write_status is not None:
            return WriteResult(good=False, status=self.write_status)
        self.written.append((address, value))
        self.values[address] = value.value
        return WriteResult(good=True)

    async def push(self, address, raw):
        """Simulate a data-change notification from the controller."""
        self.values[address] = raw
        callback = self.callbacks.get(address)
        if callback is not None:
            await callback(raw)


# ================================================================
# FIXTURES
# ================================================================
@pytest.fixture
def registry():
    return get_default_registry()


@pytest.fixture
def store(registry):
    return TagValueStore(registry)


@pytest.fixture
def channel(store):
    return DistributionChannel(store)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def engine(registry, store, channel):
    return SubscriptionEngine(registry, store, channel)


@pytest.fixture
def manager(fake_session, store, engine):
    return SessionManager(
        fake_session, store, engine, connect_timeout=0.5, watchdog_interval=0
    )


@pytest.fixture
def events():
    """Collecting listener: call it with an event, read .received."""

    class Collector:
        def __init__(self):
            self.received = []

        def __call__(self, event):
            self.received.append(event)

    return Collector()
