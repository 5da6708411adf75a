#!/usr/bin/env python3
"""
OPC UA session primitive using asyncua.

- Uses asyncua.Client low-level calls so transport, session and
  subscription can be opened and torn down step by step
- Retries transport connects with a bounded backoff
- Fully asyncio-native
"""

import asyncio
import inspect
import logging
from typing import Any

from asyncua import Client, ua

from waterstation.session.base_session import (
    BaseSession,
    ChangeCallback,
    MonitoringParameters,
    SubscriptionParameters,
    TypedValue,
    WriteResult,
)
from waterstation.tags.registry import ValueType

logger = logging.getLogger(__name__)

VARIANT_TYPES = {
    ValueType.BOOLEAN: ua.VariantType.Boolean,
    ValueType.INT16: ua.VariantType.Int16,
    ValueType.FLOAT: ua.VariantType.Float,
    ValueType.STRING: ua.VariantType.String,
}

_TRANSPORT_ERRORS = (OSError, asyncio.TimeoutError, ua.UaError)


class _DataChangeHandler:
    """Routes asyncua data-change notifications to per-node callbacks."""

    def __init__(self):
        self.callbacks: dict[str, ChangeCallback] = {}

    async def datachange_notification(self, node, val, data):
        callback = self.callbacks.get(node.nodeid.to_string())
        if callback is None:
            return
        try:
            result = callback(val)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Data change callback failed for {node.nodeid.to_string()}")


class AsyncuaSessionAdapter(BaseSession):
    """Async OPC UA client primitive (asyncua)."""

    def __init__(
        self,
        request_timeout: float = 4.0,
        initial_delay: float = 1.0,
        max_retry: int = 10,
        max_delay: float = 10.0,
        application_name: str = "Water Treatment Station Client",
    ):
        self.request_timeout = request_timeout
        self.initial_delay = initial_delay
        self.max_retry = max_retry
        self.max_delay = max_delay
        self.application_name = application_name

        self._client: Client | None = None
        self._subscription = None
        self._handler: _DataChangeHandler | None = None

    # ------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------

    async def connect(self, endpoint: str) -> None:
        attempt = 0
        while True:
            try:
                self._client = await self._open_transport(endpoint)
                return
            except _TRANSPORT_ERRORS as e:
                if attempt >= self.max_retry:
                    raise
                delay = min(self.initial_delay * 2**attempt, self.max_delay)
                attempt += 1
                logger.warning(
                    f"Connection attempt {attempt} to {endpoint} failed ({e!r}), "
                    f"retrying in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _open_transport(self, endpoint: str) -> Client:
        client = Client(url=endpoint, timeout=self.request_timeout)
        client.name = self.application_name

        await client.connect_socket()
        try:
            await client.send_hello()
            await client.open_secure_channel()
        except BaseException:
            client.disconnect_socket()
            raise
        return client

    async def disconnect(self) -> None:
        if self._client is None:
            return

        client = self._client
        self._client = None
        self._subscription = None
        self._handler = None
        try:
            await client.close_secure_channel()
        finally:
            client.disconnect_socket()

    async def create_session(self) -> None:
        client = self._require_client()
        await client.create_session()
        try:
            await client.activate_session()
        except BaseException:
            await client.close_session()
            raise

    async def close_session(self) -> None:
        if self._client is None:
            return
        await self._client.close_session()

    async def check_connection(self) -> None:
        client = self._require_client()
        await client.get_node(ua.ObjectIds.Server_ServerStatus_State).read_value()

    # ------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------

    async def create_subscription(self, params: SubscriptionParameters) -> None:
        client = self._require_client()

        ua_params = ua.CreateSubscriptionParameters()
        ua_params.RequestedPublishingInterval = params.publishing_interval * 1000
        ua_params.RequestedLifetimeCount = params.lifetime_count
        ua_params.RequestedMaxKeepAliveCount = params.max_keepalive_count
        ua_params.MaxNotificationsPerPublish = params.max_notifications_per_publish
        ua_params.PublishingEnabled = params.publishing_enabled
        ua_params.Priority = params.priority

        self._handler = _DataChangeHandler()
        self._subscription = await client.create_subscription(ua_params, self._handler)
        logger.info(f"Subscription created, ID: {self._subscription.subscription_id}")

    async def monitor_item(
        self,
        address: str,
        params: MonitoringParameters,
        on_change: ChangeCallback,
    ) -> Any:
        if self._subscription is None or self._handler is None:
            raise RuntimeError("No active subscription")

        node = self._require_client().get_node(address)
        key = node.nodeid.to_string()
        self._handler.callbacks[key] = on_change
        try:
            # asyncua always requests DiscardOldest on monitored items
            return await self._subscription.subscribe_data_change(
                node,
                queuesize=params.queue_size,
                sampling_interval=params.sampling_interval * 1000,
            )
        except BaseException:
            self._handler.callbacks.pop(key, None)
            raise

    async def terminate_subscription(self) -> None:
        if self._subscription is None:
            return

        subscription = self._subscription
        self._subscription = None
        self._handler = None
        await subscription.delete()
        logger.info("Subscription terminated")

    # ------------------------------------------------------------
    # data access
    # ------------------------------------------------------------

    async def read(self, address: str) -> Any:
        return await self._require_client().get_node(address).read_value()

    async def write(self, address: str, value: TypedValue) -> WriteResult:
        node = self._require_client().get_node(address)
        datavalue = ua.DataValue(ua.Variant(value.value, VARIANT_TYPES[value.value_type]))
        try:
            await node.write_value(datavalue)
        except ua.UaStatusCodeError as e:
            return WriteResult(good=False, status=str(e))
        return WriteResult(good=True)

    # ------------------------------------------------------------
    # internals
    # ------------------------------------------------------------

    def _require_client(self) -> Client:
        if self._client is None:
            raise RuntimeError("Client not connected")
        return self._client
