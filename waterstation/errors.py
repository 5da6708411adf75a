"""Exceptions raised by the tag synchronisation core."""

from enum import Enum


class WaterStationError(Exception):
    """Base exception for the station core."""

    code: str = "station_error"
    http_status: int = 500


class ConfigError(WaterStationError):
    """Raised when the station configuration is inconsistent."""

    code = "config_error"


class ConnectFailure(str, Enum):
    TIMEOUT = "timeout"
    REFUSED = "refused"
    ALREADY_CONNECTING_ELSEWHERE = "already_connecting_elsewhere"


class ConnectError(WaterStationError):
    """Raised when an upstream session cannot be established."""

    code = "connection_error"

    def __init__(
        self,
        kind: ConnectFailure,
        endpoint: str,
        message: str | None = None,
        *,
        cause: BaseException | None = None,
    ) -> None:
        self.kind = kind
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(message or f"Connection to {endpoint} failed: {kind.value}")

    @property
    def http_status(self) -> int:
        return 504 if self.kind is ConnectFailure.TIMEOUT else 502


class UnknownTagError(WaterStationError):
    """Raised when a tag name is not in the registry."""

    code = "unknown_tag"
    http_status = 404

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Unknown tag: {tag!r}")


class UnwritableTagError(WaterStationError):
    """Raised when a write targets a tag without Write access."""

    code = "unwritable"
    http_status = 403

    def __init__(self, tag: str) -> None:
        self.tag = tag
        super().__init__(f"Tag {tag!r} is not writable")


class InvalidTagValueError(WaterStationError):
    """Raised when a value cannot be coerced to the tag's declared type."""

    code = "invalid_value"
    http_status = 422

    def __init__(self, tag: str, value: object, value_type: str) -> None:
        self.tag = tag
        self.value = value
        self.value_type = value_type
        super().__init__(f"Value {value!r} is not a valid {value_type} for tag {tag!r}")


class NotConnectedError(WaterStationError):
    """Raised when an operation needs a Connected session and there is none."""

    code = "not_connected"
    http_status = 503

    def __init__(self, message: str = "Not connected to OPC UA server") -> None:
        super().__init__(message)


class WriteRejectedError(WaterStationError):
    """Raised when the controller rejects a write or the transport fails mid-write."""

    code = "write_rejected"
    http_status = 502

    def __init__(
        self,
        tag: str,
        message: str | None = None,
        *,
        status: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.tag = tag
        self.status = status
        self.cause = cause
        super().__init__(message or f"Failed to write value to tag {tag!r}")


class TransportClosedError(WaterStationError):
    """Raised by a listener sink whose downstream transport is gone."""

    code = "transport_closed"
