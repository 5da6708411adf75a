"""asyncua implementations of the session primitive and a station server."""

from .opcua_asyncua_client import AsyncuaSessionAdapter
from .opcua_asyncua_server import StationServerAdapter

__all__ = ["AsyncuaSessionAdapter", "StationServerAdapter"]
