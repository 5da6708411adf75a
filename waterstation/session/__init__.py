"""Upstream session lifecycle."""

from .base_session import (
    BaseSession,
    MonitoringParameters,
    SubscriptionParameters,
    TypedValue,
    WriteResult,
)
from .manager import SessionManager, SessionState
from .simulator import DegradedSimulator

__all__ = [
    "BaseSession",
    "DegradedSimulator",
    "MonitoringParameters",
    "SessionManager",
    "SessionState",
    "SubscriptionParameters",
    "TypedValue",
    "WriteResult",
]
