# tests/unit/subscription/test_engine.py
"""Tests for SubscriptionEngine against the in-memory controller."""

import pytest

from waterstation.errors import NotConnectedError


# ================================================================
# START / STOP TESTS
# ================================================================
class TestEngineLifecycle:
    @pytest.mark.asyncio
    async def test_monitors_every_readable_tag(self, engine, fake_session, registry):
        await engine.start(fake_session)

        assert sorted(engine.monitored_tags) == sorted(registry.names())
        assert fake_session.subscribed is True
        assert "ns=4;s=niveau" in fake_session.callbacks

    @pytest.mark.asyncio
    async def test_one_failing_tag_does_not_abort_the_rest(self, engine, fake_session):
        """WHY: Per-tag setup failures are isolated."""
        fake_session.fail_monitor = {"ns=4;s=BPvanne"}

        await engine.start(fake_session)

        assert "BPvanne" not in engine.monitored_tags
        assert len(engine.monitored_tags) == 9

    @pytest.mark.asyncio
    async def test_subscription_failure_monitors_nothing(self, engine, fake_session):
        fake_session.fail_subscription = RuntimeError("BadTooManySubscriptions")

        await engine.start(fake_session)

        assert engine.monitored_tags == []

    @pytest.mark.asyncio
    async def test_stop_terminates_subscription(self, engine, fake_session):
        await engine.start(fake_session)

        await engine.stop()

        assert engine.monitored_tags == []
        assert "terminate_subscription" in fake_session.calls

    @pytest.mark.asyncio
    async def test_stop_without_start(self, engine):
        await engine.stop()

        assert engine.monitored_tags == []


# ================================================================
# NOTIFICATION TESTS
# ================================================================
class TestEngineNotifications:
    @pytest.mark.asyncio
    async def test_notification_updates_store_and_publishes(
        self, engine, fake_session, store, channel, events
    ):
        await engine.start(fake_session)
        await channel.attach(events)

        await fake_session.push("ns=4;s=niveau", 71)

        assert await store.get("niveau") == 71
        assert events.received[-1] == {"tag": "niveau", "value": 71}

    @pytest.mark.asyncio
    async def test_notification_decoded_by_declared_type(self, engine, fake_session, store):
        await engine.start(fake_session)

        await fake_session.push("ns=4;s=niveau", 40.0)
        await fake_session.push("ns=4;s=pompe", 1)

        assert await store.get("niveau") == 40
        assert await store.get("pompe") is True

    @pytest.mark.asyncio
    async def test_undecodable_notification_dropped(self, engine, fake_session, store, channel, events):
        await engine.start(fake_session)
        await store.set("niveau", 50)
        await channel.attach(events)

        await fake_session.push("ns=4;s=niveau", "overflow")

        assert await store.get("niveau") == 50
        assert len(events.received) == 1

    @pytest.mark.asyncio
    async def test_null_notification_clears_value(self, engine, store):
        await store.set("pompe", True)

        await engine.apply_change("pompe", None)

        assert await store.get("pompe") is None


# ================================================================
# EXPLICIT READ TESTS
# ================================================================
class TestEngineReads:
    @pytest.mark.asyncio
    async def test_read_all_seeds_snapshot(self, engine, fake_session):
        await engine.start(fake_session)

        snapshot = await engine.read_all()

        assert snapshot["niveau"] == 42
        assert snapshot["AUT"] is True
        assert snapshot["pompe"] is False

    @pytest.mark.asyncio
    async def test_read_all_isolates_failures(self, engine, fake_session, store):
        await engine.start(fake_session)
        await store.set("marche", False)
        fake_session.fail_read = {"ns=4;s=marche"}

        snapshot = await engine.read_all()

        assert snapshot["marche"] is False
        assert snapshot["niveau"] == 42

    @pytest.mark.asyncio
    async def test_read_without_session(self, engine):
        with pytest.raises(NotConnectedError):
            await engine.read_tag("niveau")
        with pytest.raises(NotConnectedError):
            await engine.read_all()
