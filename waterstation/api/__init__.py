"""HTTP surface: event stream, control writes and connection tests."""

from .app import create_app

__all__ = ["create_app"]
