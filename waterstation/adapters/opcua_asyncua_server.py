#!/usr/bin/env python3
"""
OPC UA station server using asyncua.

- Uses asyncua.Server as a stand-in controller for local development
- Exposes every registry tag at its ns=4;s=<name> address
- Fully asyncio-native
"""

import logging
from typing import Any

from asyncua import Server, ua

from waterstation.adapters.opcua_asyncua_client import VARIANT_TYPES
from waterstation.session.simulator import MOCK_VALUES
from waterstation.tags.registry import TagRegistry, get_default_registry
from waterstation.tags.values import coerce

logger = logging.getLogger(__name__)

STATION_NAMESPACE_INDEX = 4

_DEFAULTS = {
    "Boolean": False,
    "Int16": 0,
    "Float": 0.0,
    "String": "",
}


class StationServerAdapter:
    """Async OPC UA server holding the station tags."""

    def __init__(
        self,
        registry: TagRegistry | None = None,
        endpoint="opc.tcp://0.0.0.0:4334/",
        namespace_uri="urn:waterstation:station",
        initial_values: dict[str, Any] | None = None,
    ):
        self.registry = registry or get_default_registry()
        self.endpoint = endpoint
        self.namespace_uri = namespace_uri
        self.initial_values = dict(MOCK_VALUES if initial_values is None else initial_values)

        self._server = None
        self._namespace_idx = None
        self._nodes = {}
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------

    async def start(self) -> None:
        """
        Start the server and create one variable per tag.
        """
        if self._running:
            return

        self._server = Server()
        await self._server.init()

        self._server.set_endpoint(self.endpoint)
        self._server.set_server_name("Water Treatment Station Simulator")

        # Tag addresses are fixed at namespace 4; pad the namespace array up to it
        namespaces = await self._server.get_namespace_array()
        while len(namespaces) < STATION_NAMESPACE_INDEX:
            await self._server.register_namespace(
                f"{self.namespace_uri}:reserved:{len(namespaces)}"
            )
            namespaces = await self._server.get_namespace_array()
        idx = await self._server.register_namespace(self.namespace_uri)
        if idx != STATION_NAMESPACE_INDEX:
            raise RuntimeError(
                f"Station namespace landed at index {idx}, expected {STATION_NAMESPACE_INDEX}"
            )
        self._namespace_idx = idx

        station = await self._server.nodes.objects.add_object(idx, "Station")

        for defn in self.registry:
            value = self.initial_values.get(defn.name, _DEFAULTS[defn.value_type.value])
            node = await station.add_variable(
                ua.NodeId(defn.name, idx),
                f"{idx}:{defn.name}",
                coerce(defn, value),
                varianttype=VARIANT_TYPES[defn.value_type],
            )
            if defn.writable:
                await node.set_writable()
            self._nodes[defn.name] = node

        await self._server.start()
        self._running = True
        logger.info(f"Station server listening on {self.endpoint} ({len(self._nodes)} tags)")

    async def stop(self) -> None:
        """
        Stop the server.
        """
        if not self._server:
            return

        await self._server.stop()
        self._server = None
        self._nodes = {}
        self._running = False
        logger.info("Station server stopped")

    # ------------------------------------------------------------
    # tag access
    # ------------------------------------------------------------

    async def get_state(self) -> dict[str, Any]:
        state = {}
        for name, node in self._nodes.items():
            state[name] = await node.read_value()
        return state

    async def get_variable(self, name: str) -> Any:
        return await self._node(name).read_value()

    async def set_variable(self, name: str, value: Any) -> None:
        """
        Set a tag from the controller side. Access rights do not apply here.
        """
        defn = self.registry.lookup(name)
        node = self._node(name)
        await node.write_value(
            ua.Variant(coerce(defn, value), VARIANT_TYPES[defn.value_type])
        )

    def _node(self, name: str):
        if not self._running:
            raise RuntimeError("Server not running")
        node = self._nodes.get(name)
        if node is None:
            raise KeyError(f"No OPC UA variable named '{name}'")
        return node
