"""
Upstream session primitive abstraction.

Async-only, library-agnostic.
The session manager and subscription engine depend on this interface,
never on a concrete protocol stack.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

from waterstation.tags.registry import ValueType

ChangeCallback = Callable[[Any], Union[Awaitable[None], None]]


@dataclass(frozen=True)
class SubscriptionParameters:
    publishing_interval: float = 1.0
    lifetime_count: int = 100
    max_keepalive_count: int = 10
    max_notifications_per_publish: int = 100
    priority: int = 10
    publishing_enabled: bool = True


@dataclass(frozen=True)
class MonitoringParameters:
    sampling_interval: float = 1.0
    queue_size: int = 10
    discard_oldest: bool = True


@dataclass(frozen=True)
class TypedValue:
    """Outgoing value tagged with the registry's declared type."""

    value_type: ValueType
    value: Any


@dataclass(frozen=True)
class WriteResult:
    good: bool
    status: str = "Good"


class BaseSession:
    """Connection, session, subscription and data access against one controller."""

    # ------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------

    async def connect(self, endpoint: str) -> None:
        """
        Open the transport to endpoint.

        Implementations retry transport failures on their own schedule and
        raise once they give up.
        """
        raise NotImplementedError

    async def disconnect(self) -> None:
        """Close the transport. Safe to call when nothing is open."""
        raise NotImplementedError

    async def create_session(self) -> None:
        raise NotImplementedError

    async def close_session(self) -> None:
        raise NotImplementedError

    async def check_connection(self) -> None:
        """Raise if the transport is no longer usable."""
        raise NotImplementedError

    # ------------------------------------------------------------
    # subscriptions
    # ------------------------------------------------------------

    async def create_subscription(self, params: SubscriptionParameters) -> None:
        raise NotImplementedError

    async def monitor_item(
        self,
        address: str,
        params: MonitoringParameters,
        on_change: ChangeCallback,
    ) -> Any:
        """Register one monitored item; on_change receives each new value. Returns a handle."""
        raise NotImplementedError

    async def terminate_subscription(self) -> None:
        """Delete the subscription and every monitored item it holds."""
        raise NotImplementedError

    # ------------------------------------------------------------
    # data access
    # ------------------------------------------------------------

    async def read(self, address: str) -> Any:
        raise NotImplementedError

    async def write(self, address: str, value: TypedValue) -> WriteResult:
        raise NotImplementedError
