"""
mqtt_levels: Leveled MQTT Publisher
===================================

Bounded Context: Leveled event publishing over MQTT

A write-only client that publishes severity-tagged messages (debug, info,
notice, warning, error, critical, alert, emergency, usage) on
environment-scoped topics such as ``prod-error``, over a single lazily
established broker connection.

Architecture:
- config: Immutable publisher configuration (environment or YAML)
- schemas/: Severity table and outbound message
- publishers/: Broker connection and leveled publisher
- logging/: Structured JSON console diagnostics
- errors: ConnectError / PublishError taxonomy

Public API
----------
Configuration:
    PublisherConfig

Schemas:
    Severity, OutboundMessage

Publishers:
    LevelPublisher, BrokerConnection, get_publisher

Errors:
    PublisherError, ConnectError, PublishError

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from mqtt_levels import get_publisher
    >>> log = get_publisher()          # reads MQTT_* environment variables
    >>> log.info("service started")    # fire-and-forget
    >>> log.error("disk full").result(timeout=5)   # wait for the broker ack
    True
"""

__version__ = "1.0.0"

# Configuration
from .config import PublisherConfig

# Schemas
from .schemas import OutboundMessage, Severity

# Publishers
from .publishers import BrokerConnection, LevelPublisher, get_publisher

# Errors
from .errors import ConnectError, PublishError, PublisherError

# Logging
from .logging import LogEvent, StructuredLogger, create_logger

__all__ = [
    # Version
    '__version__',
    # Configuration
    'PublisherConfig',
    # Schemas
    'OutboundMessage',
    'Severity',
    # Publishers
    'BrokerConnection',
    'LevelPublisher',
    'get_publisher',
    # Errors
    'PublisherError',
    'ConnectError',
    'PublishError',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
