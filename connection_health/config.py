"""
Connection Health - Configuration.

============================================================
CONFIGURABLE MONITOR
============================================================

- DatabaseSettings: target endpoint and credentials
- ProbeSettings:    probe counts, intervals, thresholds
- MonitorConfig:    both of the above

Configuration can be loaded from:
- Default values
- Environment variables (CONNMON_*)
- YAML config file

Durations are in seconds. The CLI accepts the historical
millisecond flags and converts them.

============================================================
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional
import logging

import yaml
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import ArgumentError

from .exceptions import ClientConfigurationError, ConfigurationError


logger = logging.getLogger(__name__)


ENV_PREFIX = "CONNMON_"


# =============================================================
# DATABASE SETTINGS
# =============================================================


@dataclass
class DatabaseSettings:
    """
    Target database.

    An explicit url wins over the individual fields.
    """
    url: Optional[str] = None
    driver: str = "mysql+aiomysql"
    host: str = "127.0.0.1"
    port: int = 4000
    user: str = "root"
    password: str = ""
    database: str = "test"
    connect_timeout: float = 5.0
    transaction_query: str = "SELECT COUNT(*) FROM information_schema.columns"

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigurationError("port must be 1-65535", "port", self.port)
        if self.connect_timeout <= 0:
            raise ConfigurationError(
                "connect_timeout must be positive", "connect_timeout", self.connect_timeout
            )

    def render_url(self) -> URL:
        """
        Build the SQLAlchemy URL.

        Raises:
            ClientConfigurationError: Malformed explicit url, including
                a non-numeric port
        """
        if self.url:
            try:
                return make_url(self.url)
            except (ArgumentError, ValueError) as e:
                raise ClientConfigurationError(str(e)) from e

        return URL.create(
            drivername=self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database or None,
        )

    def display_target(self) -> str:
        """Target without credentials, for logs."""
        try:
            return self.render_url().render_as_string(hide_password=True)
        except ClientConfigurationError:
            return "<invalid url>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": self.display_target(),
            "connect_timeout": self.connect_timeout,
            "transaction_query": self.transaction_query,
        }


# =============================================================
# PROBE SETTINGS
# =============================================================


@dataclass
class ProbeSettings:
    """
    Probe fan-out and timing.

    sentinel_interval = 0 disables the sentinel probe.
    """
    long_conns: int = 100
    short_concurrency: int = 1
    long_interval: float = 1.0
    short_interval: float = 1.0
    sentinel_interval: float = 1.0
    slow_threshold: float = 0.1
    exercise_transaction: bool = False
    sentinel_max_in_flight: int = 16
    operation_timeout: float = 30.0

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.long_conns < 0:
            raise ConfigurationError("long_conns must be >= 0", "long_conns", self.long_conns)
        if self.short_concurrency < 0:
            raise ConfigurationError(
                "short_concurrency must be >= 0", "short_concurrency", self.short_concurrency
            )
        for name in ("long_interval", "short_interval", "slow_threshold", "operation_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(f"{name} must be positive", name, value)
        if self.sentinel_interval < 0:
            raise ConfigurationError(
                "sentinel_interval must be >= 0", "sentinel_interval", self.sentinel_interval
            )
        if self.sentinel_max_in_flight < 1:
            raise ConfigurationError(
                "sentinel_max_in_flight must be >= 1",
                "sentinel_max_in_flight",
                self.sentinel_max_in_flight,
            )

    @property
    def sentinel_enabled(self) -> bool:
        return self.sentinel_interval > 0

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# =============================================================
# MAIN CONFIGURATION
# =============================================================


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# env suffix -> (section, field, parser)
_ENV_FIELDS: Dict[str, tuple] = {
    "DATABASE_URL": ("database", "url", str),
    "DRIVER": ("database", "driver", str),
    "HOST": ("database", "host", str),
    "PORT": ("database", "port", int),
    "USER": ("database", "user", str),
    "PASSWORD": ("database", "password", str),
    "DATABASE": ("database", "database", str),
    "CONNECT_TIMEOUT": ("database", "connect_timeout", float),
    "TRANSACTION_QUERY": ("database", "transaction_query", str),
    "LONG_CONNS": ("probes", "long_conns", int),
    "SHORT_CONCURRENCY": ("probes", "short_concurrency", int),
    "LONG_INTERVAL": ("probes", "long_interval", float),
    "SHORT_INTERVAL": ("probes", "short_interval", float),
    "SENTINEL_INTERVAL": ("probes", "sentinel_interval", float),
    "SLOW_THRESHOLD": ("probes", "slow_threshold", float),
    "EXERCISE_TRANSACTION": ("probes", "exercise_transaction", _parse_bool),
    "SENTINEL_MAX_IN_FLIGHT": ("probes", "sentinel_max_in_flight", int),
    "OPERATION_TIMEOUT": ("probes", "operation_timeout", float),
}


@dataclass
class MonitorConfig:
    """
    Main configuration for the monitor.
    """
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    probes: ProbeSettings = field(default_factory=ProbeSettings)

    @classmethod
    def from_mapping(cls, data: Dict[str, Dict[str, Any]]) -> "MonitorConfig":
        """
        Build from {"database": {...}, "probes": {...}}.

        Unknown keys are rejected so typos do not go unnoticed.
        """
        sections: Dict[str, Callable[..., Any]] = {
            "database": DatabaseSettings,
            "probes": ProbeSettings,
        }
        unknown = set(data) - set(sections)
        if unknown:
            raise ConfigurationError(f"unknown config sections: {', '.join(sorted(unknown))}")

        built = {}
        for name, factory in sections.items():
            values = data.get(name) or {}
            try:
                built[name] = factory(**values)
            except TypeError as e:
                raise ConfigurationError(f"invalid '{name}' section: {e}") from e
        return cls(**built)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "MonitorConfig":
        """
        Load configuration from environment variables.

        Environment variables (all optional):
        - CONNMON_DATABASE_URL, CONNMON_DRIVER, CONNMON_HOST,
          CONNMON_PORT, CONNMON_USER, CONNMON_PASSWORD,
          CONNMON_DATABASE, CONNMON_CONNECT_TIMEOUT,
          CONNMON_TRANSACTION_QUERY
        - CONNMON_LONG_CONNS, CONNMON_SHORT_CONCURRENCY,
          CONNMON_LONG_INTERVAL, CONNMON_SHORT_INTERVAL,
          CONNMON_SENTINEL_INTERVAL, CONNMON_SLOW_THRESHOLD,
          CONNMON_EXERCISE_TRANSACTION,
          CONNMON_SENTINEL_MAX_IN_FLIGHT, CONNMON_OPERATION_TIMEOUT
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Dict[str, Any]] = {"database": {}, "probes": {}}

        for suffix, (section, name, parser) in _ENV_FIELDS.items():
            raw = environ.get(ENV_PREFIX + suffix)
            if raw is None or raw == "":
                continue
            try:
                data[section][name] = parser(raw)
            except ValueError as e:
                raise ConfigurationError(
                    f"invalid value for {ENV_PREFIX + suffix}: {e}", name, raw
                ) from e

        return cls.from_mapping(data)

    @classmethod
    def from_yaml(cls, path: Path) -> "MonitorConfig":
        """
        Load configuration from a YAML file.

        Raises:
            ConfigurationError: Unreadable file or invalid content
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"failed to load YAML config from {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"YAML config {path} must be a mapping")
        return cls.from_mapping(data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (password redacted)."""
        return {
            "database": self.database.to_dict(),
            "probes": self.probes.to_dict(),
        }
