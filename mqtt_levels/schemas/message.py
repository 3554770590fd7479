"""
Outbound Message Schema
=======================

Bounded Context: Shared Data Structures

Design Principles:
- Immutability: frozen=True prevents accidental mutation
- Validation: Constructor validates invariants

Types:
- Severity: Severity table, each value is its topic suffix
- OutboundMessage: One message on its way to the broker
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Union

Payload = Union[str, bytes, bytearray, Dict[str, Any], List[Any]]

VALID_QOS = (0, 1, 2)


class Severity(str, Enum):
    """
    Message severities.

    The value is the topic suffix: a ``WARNING`` message published in the
    ``prod`` environment goes to ``prod-warning``.
    """

    DEBUG = "debug"
    INFO = "info"
    NOTICE = "notice"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"
    ALERT = "alert"
    EMERGENCY = "emergency"
    USAGE = "usage"

    @property
    def suffix(self) -> str:
        return self.value


@dataclass(frozen=True)
class OutboundMessage:
    """
    Immutable message bound for the broker.

    Attributes:
        topic: Destination topic
        payload: Text, bytes, or a JSON-serializable dict/list
        qos: Quality of Service (0, 1 or 2)
        retain: Ask the broker to keep it as the topic's last value

    Invariants:
        - topic is not empty
        - qos in {0, 1, 2}

    Example:
        >>> msg = OutboundMessage.for_severity("prod", Severity.ERROR, "disk full")
        >>> msg.topic
        'prod-error'
    """
    topic: str
    payload: Payload
    qos: int = 0
    retain: bool = False

    def __post_init__(self):
        """Validate invariants."""
        if not self.topic:
            raise ValueError("topic cannot be empty")
        if isinstance(self.qos, bool) or self.qos not in VALID_QOS:
            raise ValueError(f"QoS must be 0, 1, or 2, got {self.qos!r}")
        if not isinstance(self.payload, (str, bytes, bytearray, dict, list)):
            raise TypeError(
                f"payload must be str, bytes, dict or list, got {type(self.payload).__name__}"
            )

    @classmethod
    def for_severity(
        cls,
        environment: str,
        severity: Severity,
        payload: Payload,
        qos: int = 0,
        retain: bool = False
    ) -> 'OutboundMessage':
        """Build the message for ``severity`` on ``{environment}-{severity}``."""
        return cls(
            topic=f"{environment}-{Severity(severity).suffix}",
            payload=payload,
            qos=qos,
            retain=retain,
        )

    def encoded_payload(self) -> Union[str, bytes, bytearray]:
        """Payload as handed to the MQTT client; dicts and lists become JSON."""
        if isinstance(self.payload, (dict, list)):
            return json.dumps(self.payload)
        return self.payload
