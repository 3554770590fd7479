"""
Structured Logging for mqtt_levels
==================================

Bounded Context: Observability

JSON-structured console diagnostics for the publisher. These are the
process-local logs about connecting and publishing, not the leveled
messages that go to the broker.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from mqtt_levels.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="publisher")
    >>> logger.info(
    ...     event=LogEvent.PUBLISHER_CREATED,
    ...     message="MQTT client created for dev",
    ...     metadata={'environment': 'dev'}
    ... )

Output:
    {
        "timestamp": "2025-10-24T15:30:45.123456+00:00",
        "level": "INFO",
        "component": "publisher",
        "event": "publisher.created",
        "message": "MQTT client created for dev",
        "metadata": {"environment": "dev"}
    }
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
