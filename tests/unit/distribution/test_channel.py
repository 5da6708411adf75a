# tests/unit/distribution/test_channel.py
"""Tests for DistributionChannel and QueueListener."""

import pytest

from waterstation.distribution.channel import DistributionChannel, QueueListener
from waterstation.errors import TransportClosedError


# ================================================================
# ATTACH TESTS
# ================================================================
class TestChannelAttach:
    @pytest.mark.asyncio
    async def test_attach_delivers_initial_snapshot(self, channel, store, events):
        """WHY: A new listener must see the full state before any change."""
        await store.set("niveau", 65)

        await channel.attach(events)

        assert len(events.received) == 1
        initial = events.received[0]["initial"]
        assert initial["niveau"] == 65
        assert initial["pompe"] is None
        assert len(initial) == 10

    @pytest.mark.asyncio
    async def test_attach_returns_distinct_ids(self, channel, events):
        first = await channel.attach(events)
        second = await channel.attach(events)

        assert first != second
        assert channel.listener_count == 2

    @pytest.mark.asyncio
    async def test_initial_precedes_changes(self, channel, events):
        await channel.attach(events)
        channel.publish("pompe", True)

        assert "initial" in events.received[0]
        assert events.received[1] == {"tag": "pompe", "value": True}


# ================================================================
# PUBLISH TESTS
# ================================================================
class TestChannelPublish:
    @pytest.mark.asyncio
    async def test_publish_reaches_every_listener(self, channel):
        received = {"a": [], "b": []}
        await channel.attach(received["a"].append)
        await channel.attach(received["b"].append)

        channel.publish("niveau", 70)

        assert received["a"][-1] == {"tag": "niveau", "value": 70}
        assert received["b"][-1] == {"tag": "niveau", "value": 70}

    @pytest.mark.asyncio
    async def test_publish_order_preserved(self, channel, events):
        await channel.attach(events)

        for level in (10, 20, 30):
            channel.publish("niveau", level)

        assert [e["value"] for e in events.received[1:]] == [10, 20, 30]

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_others(self, channel, events):
        """WHY: One broken consumer must never stall the rest."""

        def broken(event):
            if "tag" in event:
                raise RuntimeError("socket exploded")

        await channel.attach(broken)
        await channel.attach(events)

        channel.publish("vanne", False)

        assert events.received[-1] == {"tag": "vanne", "value": False}
        assert channel.listener_count == 2

    @pytest.mark.asyncio
    async def test_closed_transport_is_detached(self, channel, events):
        def gone(event):
            if "tag" in event:
                raise TransportClosedError("client went away")

        await channel.attach(gone)
        await channel.attach(events)

        channel.publish("vanne", True)

        assert channel.listener_count == 1
        assert events.received[-1] == {"tag": "vanne", "value": True}

    def test_publish_without_listeners(self, channel):
        channel.publish("niveau", 1)

        assert channel.listener_count == 0


# ================================================================
# DETACH TESTS
# ================================================================
class TestChannelDetach:
    @pytest.mark.asyncio
    async def test_detach_stops_delivery(self, channel, events):
        subscription_id = await channel.attach(events)
        channel.detach(subscription_id)

        channel.publish("pompe", True)

        assert len(events.received) == 1

    @pytest.mark.asyncio
    async def test_detach_is_idempotent(self, channel, events):
        subscription_id = await channel.attach(events)

        channel.detach(subscription_id)
        channel.detach(subscription_id)
        channel.detach("never-attached")

        assert channel.listener_count == 0

    @pytest.mark.asyncio
    async def test_detach_during_publish(self, channel, events):
        """WHY: A listener leaving mid-delivery must not disturb the others."""
        ids = {}

        def leaves(event):
            if "tag" in event:
                channel.detach(ids["self"])

        ids["self"] = await channel.attach(leaves)
        await channel.attach(events)

        channel.publish("marche", True)

        assert events.received[-1] == {"tag": "marche", "value": True}
        assert channel.listener_count == 1

    @pytest.mark.asyncio
    async def test_close_drops_everyone(self, channel, events):
        await channel.attach(events)
        await channel.attach(events)

        channel.close()

        assert channel.listener_count == 0


# ================================================================
# QUEUE LISTENER TESTS
# ================================================================
class TestQueueListener:
    @pytest.mark.asyncio
    async def test_queues_events(self, store):
        channel = DistributionChannel(store)
        listener = QueueListener(maxsize=10)

        await channel.attach(listener)
        channel.publish("niveau", 5)

        assert "initial" in await listener.get()
        assert await listener.get() == {"tag": "niveau", "value": 5}

    @pytest.mark.asyncio
    async def test_overflow_detaches(self, store):
        """WHY: A consumer that stops reading must not grow memory without bound."""
        channel = DistributionChannel(store)
        listener = QueueListener(maxsize=2)

        await channel.attach(listener)
        channel.publish("niveau", 1)
        channel.publish("niveau", 2)

        assert listener.closed is True
        assert channel.listener_count == 0

    def test_closed_listener_raises(self):
        listener = QueueListener()
        listener.close()

        with pytest.raises(TransportClosedError):
            listener({"tag": "niveau", "value": 1})
