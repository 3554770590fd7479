"""
mqtt_levels Schemas
===================

Bounded Context: Data Structures

Public API
----------
    Severity: Severity table (value = topic suffix)
    OutboundMessage: Immutable outbound message
    VALID_QOS: Accepted Quality of Service levels

Example:
    >>> from mqtt_levels.schemas import OutboundMessage, Severity
    >>> OutboundMessage.for_severity("dev", Severity.USAGE, "42 calls").topic
    'dev-usage'
"""

from .message import OutboundMessage, Payload, Severity, VALID_QOS

__all__ = [
    'OutboundMessage',
    'Payload',
    'Severity',
    'VALID_QOS',
]
