"""Validated writes to controller tags."""

from .write_gateway import WriteGateway

__all__ = ["WriteGateway"]
