# tests/integration/test_runtime_integration.py
"""End-to-end runtime flows against the in-memory controller."""

import asyncio
import random

import pytest

from waterstation.config.config_loader import StationConfig
from waterstation.distribution.channel import QueueListener
from waterstation.runtime import StationRuntime
from waterstation.session.manager import SessionState

ENDPOINT = "opc.tcp://station:4334"


def make_config(**session):
    return StationConfig.from_dict(
        {
            "opcua": {"endpoint": ENDPOINT, "connect_timeout": 0.5, "watchdog_interval": 0},
            "session": session,
            "simulator": {"level_interval": 0.01, "toggle_interval": 100},
        }
    )


@pytest.mark.asyncio
async def test_runtime_connect_notify_write_shutdown(fake_session):
    runtime = StationRuntime(make_config(), primitive=fake_session)
    await runtime.initialise()

    # Connect and seed
    assert await runtime.ensure_connected() is SessionState.CONNECTED
    assert (await runtime.status())["state"] == "connected"

    # Two independent listeners
    first, second = QueueListener(), QueueListener()
    first_id = await runtime.channel.attach(first)
    await runtime.channel.attach(second)
    assert (await first.get())["initial"]["niveau"] == 42
    assert (await second.get())["initial"]["niveau"] == 42

    # Controller change fans out
    await fake_session.push("ns=4;s=niveau", 80)
    assert await first.get() == {"tag": "niveau", "value": 80}
    assert await second.get() == {"tag": "niveau", "value": 80}

    # One listener leaves; the other keeps receiving
    runtime.channel.detach(first_id)
    await fake_session.push("ns=4;s=pompe", True)
    assert await second.get() == {"tag": "pompe", "value": True}
    assert first.queue.empty()

    # Write round trip
    assert await runtime.write("vanne", "off") is False
    assert fake_session.values["ns=4;s=vanne"] is False
    assert await runtime.store.get("vanne") is False

    await runtime.shutdown()
    assert runtime.channel.listener_count == 0
    assert all(v is None for v in (await runtime.store.get_all()).values())
    assert (await runtime.status())["session_state"] == "disconnected"


@pytest.mark.asyncio
async def test_runtime_without_fallback_has_no_simulator(fake_session):
    runtime = StationRuntime(make_config(), primitive=fake_session)

    assert runtime.simulator is None


@pytest.mark.asyncio
async def test_runtime_degraded_fallback(fake_session):
    runtime = StationRuntime(
        make_config(production=False, degraded_fallback=True),
        primitive=fake_session,
        rng=random.Random(11),
    )
    fake_session.fail_connect = ConnectionRefusedError("refused")
    await runtime.initialise()

    listener = QueueListener()
    assert await runtime.ensure_connected() is SessionState.DEGRADED
    await runtime.channel.attach(listener)

    initial = (await listener.get())["initial"]
    assert initial["marche"] is True

    change = await asyncio.wait_for(listener.get(), 2.0)
    assert change["tag"] == "niveau"
    assert 0 <= change["value"] <= 99

    status = await runtime.status()
    assert status["state"] == "degraded"
    assert status["session_state"] == "degraded"

    await runtime.shutdown()
    assert runtime.simulator.running is False


@pytest.mark.asyncio
async def test_two_runtimes_are_independent(fake_session):
    """WHY: No process-wide state; runtimes must not see each other."""
    other_session = type(fake_session)(values={"ns=4;s=niveau": 7})
    first = StationRuntime(make_config(), primitive=fake_session)
    second = StationRuntime(make_config(), primitive=other_session)
    await first.initialise()
    await second.initialise()

    await first.ensure_connected()

    assert await first.store.get("niveau") == 42
    assert await second.store.get("niveau") is None
    assert second.manager.state is SessionState.DISCONNECTED

    await second.ensure_connected("opc.tcp://other:4334")
    assert await second.store.get("niveau") == 7
    assert await first.store.get("niveau") == 42

    await first.shutdown()
    await second.shutdown()
