"""Station configuration."""

from .config_loader import (
    ApiConfig,
    ClientConfig,
    ConfigLoader,
    OPCUAConfig,
    SessionConfig,
    SimulatorConfig,
    StationConfig,
    SubscriptionConfig,
    load_station_config,
)

__all__ = [
    "ApiConfig",
    "ClientConfig",
    "ConfigLoader",
    "OPCUAConfig",
    "SessionConfig",
    "SimulatorConfig",
    "StationConfig",
    "SubscriptionConfig",
    "load_station_config",
]
