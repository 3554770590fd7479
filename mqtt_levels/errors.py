"""
Publisher error taxonomy.

Errors are raised inside the connection layer and caught by the publisher,
which logs them, counts them and hands them to error listeners. They never
reach severity-method callers.
"""

from typing import Optional


class PublisherError(Exception):
    """Base class for broker failures seen by the publisher."""

    def __init__(self, message: str, broker: Optional[str] = None):
        super().__init__(message)
        self.broker = broker


class ConnectError(PublisherError):
    """Broker unreachable, connection refused, or CONNACK timeout."""


class PublishError(PublisherError):
    """Send rejected by the client or not acknowledged by the broker."""

    def __init__(self, message: str, topic: str, broker: Optional[str] = None):
        super().__init__(message, broker=broker)
        self.topic = topic
