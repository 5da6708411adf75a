"""Shared tag value snapshot."""

from .tag_store import TagValueStore

__all__ = ["TagValueStore"]
