"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names emitted by the leveled publisher.

Event Naming Convention:
    <component>.<category>.<action>

    component: publisher, mqtt, error
    category: connected, publish, created
    action: success, failed

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.topic
    | filter event = "mqtt.publish.failed"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - publisher.*: Publisher lifecycle
    - mqtt.*: MQTT broker interactions
    - error.*: Error conditions
    """

    # ========== Publisher Events ==========
    PUBLISHER_CREATED = "publisher.created"
    """Publisher constructed (no network I/O yet)."""

    PUBLISHER_CLOSED = "publisher.closed"
    """Publisher released its connection and workers."""

    PUBLISHER_REJECTED = "publisher.rejected"
    """Message dropped because the publisher is closed."""

    PUBLISHER_BACKLOG_FULL = "publisher.backlog_full"
    """Message dropped because too many publishes are pending."""

    # ========== MQTT Events ==========
    MQTT_CONNECTING = "mqtt.connecting"
    """Connection attempt started."""

    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker acknowledged the connection."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost or closed."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message acknowledged by broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Error Events ==========
    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Unexpected error during message publication."""

    LISTENER_ERROR = "error.listener"
    """An error listener raised while being notified."""
