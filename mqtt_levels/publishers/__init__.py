"""
MQTT Publishers
==============

Bounded Context: Message Production

Design:
- BrokerConnection: One paho-mqtt client with connect/publish handshakes
- LevelPublisher: Severity methods, lazy single-flight connect, error policy
- get_publisher: Process-wide default LevelPublisher

Public API
----------
    BrokerConnection: Single broker connection
    LevelPublisher: Leveled message publisher
    get_publisher: Default publisher configured from the environment

Example:
    >>> from mqtt_levels.publishers import get_publisher
    >>> get_publisher().warning("cache miss ratio above 40%")
"""

from .connection import BrokerConnection
from .leveled import LevelPublisher, get_publisher

__all__ = [
    'BrokerConnection',
    'LevelPublisher',
    'get_publisher',
]
