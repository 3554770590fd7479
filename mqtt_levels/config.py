"""
Configuration schema for the leveled MQTT publisher.

Captured once at publisher construction and immutable afterwards. Built from
environment variables (``PublisherConfig.from_env``) or from a YAML file
(``PublisherConfig.from_yaml``).
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional, Union
import yaml


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# Environment variable -> (field name, default)
ENV_VARIABLES = {
    "MQTT_HOST": ("host", "localhost"),
    "MQTT_PORT": ("port", 1883),
    "MQTT_CLIENT_ID": ("client_id", None),
    "MQTT_CLEAN": ("clean", True),
    "MQTT_CLIENT_TIMEOUT": ("connect_timeout_ms", 4000),
    "MQTT_USER": ("username", "user"),
    "MQTT_PASSWORD": ("password", "password"),
    "MQTT_RECONNECT_PERIOD": ("reconnect_period_ms", 1000),
    "MQTT_KEEPALIVE": ("keepalive", 60),
    "MQTT_ENV": ("environment", "dev"),
    "MQTT_PUBLISH_TIMEOUT": ("publish_timeout_ms", 4000),
    "MQTT_PUBLISHER_WORKERS": ("max_workers", 4),
    "MQTT_PUBLISHER_BACKLOG": ("max_backlog", 1000),
}


def parse_bool(value: str, name: str = "value") -> bool:
    """
    Parse a boolean flag from text.

    Raises:
        ValueError: If value is not a recognised flag
    """
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(
        f"{name} must be one of {sorted(_TRUE_VALUES | _FALSE_VALUES)}, got {value!r}"
    )


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value.strip())
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


@dataclass(frozen=True)
class PublisherConfig:
    """
    MQTT broker and publisher configuration.

    Timeouts and the reconnect period are in milliseconds, keepalive is in
    seconds. ``client_id=None`` lets the MQTT client generate one.
    """

    host: str = "localhost"
    port: int = 1883
    client_id: Optional[str] = None
    clean: bool = True
    connect_timeout_ms: int = 4000
    username: Optional[str] = "user"
    password: Optional[str] = "password"
    reconnect_period_ms: int = 1000
    keepalive: int = 60
    environment: str = "dev"
    publish_timeout_ms: int = 4000
    max_workers: int = 4
    max_backlog: int = 1000

    def __post_init__(self):
        """Validate publisher configuration."""
        if not self.host:
            raise ValueError("host cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        for name in ("connect_timeout_ms", "reconnect_period_ms", "publish_timeout_ms"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")

        if self.keepalive < 0:
            raise ValueError(f"keepalive must be >= 0, got {self.keepalive}")

        if self.max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {self.max_workers}")

        if self.max_backlog < 1:
            raise ValueError(f"max_backlog must be >= 1, got {self.max_backlog}")

        if not self.environment:
            raise ValueError("environment cannot be empty")

        if not self.clean and not self.client_id:
            raise ValueError("client_id is required when clean is False")

    @property
    def url(self) -> str:
        """Broker connection URL (``mqtt://host:port``)."""
        return f"mqtt://{self.host}:{self.port}"

    @property
    def connect_timeout(self) -> float:
        """Connect timeout in seconds."""
        return self.connect_timeout_ms / 1000.0

    @property
    def publish_timeout(self) -> float:
        """Publish acknowledgement timeout in seconds."""
        return self.publish_timeout_ms / 1000.0

    @property
    def reconnect_period(self) -> float:
        """Reconnect period in seconds."""
        return self.reconnect_period_ms / 1000.0

    def topic_for(self, suffix: str) -> str:
        """Environment-scoped topic name (``{environment}-{suffix}``)."""
        return f"{self.environment}-{suffix}"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PublisherConfig":
        """
        Load configuration from environment variables.

        Unset or empty variables fall back to the defaults listed in
        ``ENV_VARIABLES``.

        Raises:
            ValueError: If a variable holds a malformed value
        """
        environ = os.environ if environ is None else environ
        values = {}
        for variable, (name, default) in ENV_VARIABLES.items():
            raw = environ.get(variable)
            if raw is None or raw == "":
                values[name] = default
            elif isinstance(default, bool):
                values[name] = parse_bool(raw, variable)
            elif isinstance(default, int):
                values[name] = _parse_int(raw, variable)
            else:
                values[name] = raw
        return cls(**values)

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "PublisherConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            host: "broker.internal"
            port: 1883
            environment: "prod"
            username: "logger"
            password: "secret"
            connect_timeout_ms: 4000
            keepalive: 60

        Raises:
            ValueError: If the file is not a mapping or has unknown keys
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {yaml_path}, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(
                f"Unknown configuration keys in {yaml_path}: {sorted(unknown)}"
            )

        return cls(**data)
