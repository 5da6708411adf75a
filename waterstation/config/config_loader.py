# waterstation/config/config_loader.py
"""
YAML configuration for the station core.

Source of truth:
- config/station.yml (optional, merged over built-in defaults)
"""

import copy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from waterstation.errors import ConfigError

DEFAULTS: dict[str, Any] = {
    "opcua": {
        "endpoint": "opc.tcp://localhost:4334",
        "connect_timeout": 10.0,
        "request_timeout": 4.0,
        "watchdog_interval": 5.0,
        "retry": {"initial_delay": 1.0, "max_retry": 10, "max_delay": 10.0},
    },
    "subscription": {
        "publishing_interval": 1.0,
        "lifetime_count": 100,
        "max_keepalive_count": 10,
        "max_notifications_per_publish": 100,
        "priority": 10,
        "sampling_interval": 1.0,
        "queue_size": 10,
        "discard_oldest": True,
    },
    "session": {
        "strategy": "real",
        "production": True,
        "degraded_fallback": False,
    },
    "simulator": {"level_interval": 5.0, "toggle_interval": 15.0, "seed": None},
    "api": {
        "host": "0.0.0.0",
        "port": 8080,
        "keepalive_interval": 15.0,
        "listener_queue_size": 1000,
    },
    "client": {"max_retries": 5, "retry_delay": 3.0},
    "logging": {"level": "INFO"},
}

_STRATEGIES = ("real", "simulated")


def _deep_merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads station.yml from a config directory."""

    FILENAME = "station.yml"

    def __init__(self, config_dir: str = "config"):
        self.config_dir = Path(config_dir)

    def load_all(self) -> dict[str, Any]:
        """Return the merged configuration dict; defaults when no file exists."""
        path = self.config_dir / self.FILENAME
        if not path.exists():
            return copy.deepcopy(DEFAULTS)

        with open(path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")

        return _deep_merge(DEFAULTS, data)


# ----------------------------------------------------------------
# Typed views
# ----------------------------------------------------------------


@dataclass
class RetryConfig:
    initial_delay: float = 1.0
    max_retry: int = 10
    max_delay: float = 10.0


@dataclass
class OPCUAConfig:
    endpoint: str = "opc.tcp://localhost:4334"
    connect_timeout: float = 10.0
    request_timeout: float = 4.0
    watchdog_interval: float = 5.0
    retry: RetryConfig = field(default_factory=RetryConfig)


@dataclass
class SubscriptionConfig:
    publishing_interval: float = 1.0
    lifetime_count: int = 100
    max_keepalive_count: int = 10
    max_notifications_per_publish: int = 100
    priority: int = 10
    sampling_interval: float = 1.0
    queue_size: int = 10
    discard_oldest: bool = True


@dataclass
class SessionConfig:
    strategy: str = "real"
    production: bool = True
    degraded_fallback: bool = False

    def __post_init__(self) -> None:
        if self.strategy not in _STRATEGIES:
            raise ConfigError(
                f"session.strategy must be one of {_STRATEGIES}, got {self.strategy!r}"
            )
        if self.production and (self.degraded_fallback or self.strategy == "simulated"):
            raise ConfigError(
                "Simulated data is not allowed in production; "
                "set session.production to false to opt in"
            )


@dataclass
class SimulatorConfig:
    level_interval: float = 5.0
    toggle_interval: float = 15.0
    seed: int | None = None


@dataclass
class ApiConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    keepalive_interval: float = 15.0
    listener_queue_size: int = 1000


@dataclass
class ClientConfig:
    max_retries: int = 5
    retry_delay: float = 3.0


@dataclass
class StationConfig:
    opcua: OPCUAConfig = field(default_factory=OPCUAConfig)
    subscription: SubscriptionConfig = field(default_factory=SubscriptionConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    client: ClientConfig = field(default_factory=ClientConfig)
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StationConfig":
        merged = _deep_merge(DEFAULTS, data)
        try:
            opcua = dict(merged["opcua"])
            opcua["retry"] = RetryConfig(**opcua["retry"])
            return cls(
                opcua=OPCUAConfig(**opcua),
                subscription=SubscriptionConfig(**merged["subscription"]),
                session=SessionConfig(**merged["session"]),
                simulator=SimulatorConfig(**merged["simulator"]),
                api=ApiConfig(**merged["api"]),
                client=ClientConfig(**merged["client"]),
                log_level=str(merged["logging"]["level"]).upper(),
            )
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_station_config(config_dir: str = "config") -> StationConfig:
    """Load and validate the station configuration."""
    return StationConfig.from_dict(ConfigLoader(config_dir=config_dir).load_all())
