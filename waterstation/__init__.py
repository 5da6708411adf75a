"""Water treatment station tag synchronisation and distribution core."""

__version__ = "0.1.0"
