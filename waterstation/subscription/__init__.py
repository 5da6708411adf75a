"""Monitored items and change notification handling."""

from .engine import SubscriptionEngine

__all__ = ["SubscriptionEngine"]
