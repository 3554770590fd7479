"""
Broker Connection
=================

Bounded Context: MQTT Infrastructure

One handle to the broker: a paho-mqtt client plus the handshakes around it.

Design:
- open() blocks until CONNACK, refusal, or connect timeout
- send() blocks until the broker acknowledges (QoS 1/2) or the socket write
  completes (QoS 0), bounded by a timeout
- Failures surface as ConnectError / PublishError; the owner decides
  whether they propagate
- Thread-safe (paho-mqtt loop thread + threading.Event)

Responsibilities:
- MQTT connection lifecycle (open, close)
- Message transmission
- NOT responsible for: when to connect, error policy, topic naming
  (delegated to LevelPublisher)
"""

import threading
import time
from typing import Any, Optional
import paho.mqtt.client as mqtt

from ..config import PublisherConfig
from ..errors import ConnectError, PublishError
from ..logging import StructuredLogger, LogEvent
from ..schemas import OutboundMessage


class BrokerConnection:
    """
    Single connection to the MQTT broker.

    Attributes:
        config: Publisher configuration (broker address, credentials, timeouts)
        client: Underlying paho-mqtt client
        logger: Structured logger instance

    Thread Safety:
        Callbacks run in the paho network thread; open()/send() are called
        from publisher workers.
    """

    def __init__(self, config: PublisherConfig, logger: StructuredLogger):
        self.config = config
        self.logger = logger

        self.client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.client_id or "",
            clean_session=config.clean,
            protocol=mqtt.MQTTv311,
        )
        if config.username:
            self.client.username_pw_set(config.username, config.password)
        self.client.connect_timeout = config.connect_timeout
        self.client.reconnect_delay_set(
            min_delay=config.reconnect_period,
            max_delay=config.reconnect_period,
        )

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        # Handshake state
        self._settled = threading.Event()
        self._connect_error: Optional[ConnectError] = None
        self._loop_started = False
        self._closed = False

    @property
    def broker(self) -> str:
        return self.config.url

    @property
    def connected(self) -> bool:
        """Whether the client currently holds a live broker session."""
        return not self._closed and self.client.is_connected()

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any
    ) -> None:
        """CONNACK received (first connect or automatic reconnect)."""
        if reason_code.is_failure:
            self._connect_error = ConnectError(
                f"Connection refused by broker: {reason_code}",
                broker=self.broker,
            )
        else:
            self.logger.info(
                event=LogEvent.MQTT_CONNECTED,
                message="Connected to MQTT broker",
                metadata={
                    'broker': self.broker,
                    'client_id': self.config.client_id,
                }
            )
        self._settled.set()

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any
    ) -> None:
        metadata = {'broker': self.broker, 'reason_code': str(reason_code)}
        if reason_code.is_failure:
            self.logger.warning(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Unexpected disconnection from MQTT broker",
                metadata=metadata
            )
        else:
            self.logger.info(
                event=LogEvent.MQTT_DISCONNECTED,
                message="Disconnected from MQTT broker",
                metadata=metadata
            )

    def open(self) -> None:
        """
        Connect and wait for the broker's CONNACK.

        Raises:
            ConnectError: Broker unreachable, connection refused, or no
                CONNACK within the configured connect timeout
        """
        started = time.monotonic()
        try:
            self.client.connect(
                self.config.host,
                self.config.port,
                keepalive=self.config.keepalive,
            )
        except (OSError, ValueError) as e:
            self.close()
            raise ConnectError(f"Unable to reach broker: {e}", broker=self.broker) from e

        self.client.loop_start()
        self._loop_started = True

        # connect_timeout bounds the whole handshake, socket connect included
        remaining = max(0.0, self.config.connect_timeout - (time.monotonic() - started))
        if not self._settled.wait(timeout=remaining):
            self.close()
            raise ConnectError(
                f"No CONNACK within {self.config.connect_timeout_ms}ms",
                broker=self.broker,
            )

        if self._connect_error is not None:
            self.close()
            raise self._connect_error

    def send(self, message: OutboundMessage, timeout: float) -> int:
        """
        Publish one message and wait for its acknowledgement.

        Args:
            message: Message to publish
            timeout: Seconds to wait for the acknowledgement

        Returns:
            MQTT message id

        Raises:
            PublishError: Client rejected the send or no acknowledgement arrived
        """
        try:
            info = self.client.publish(
                message.topic,
                message.encoded_payload(),
                qos=message.qos,
                retain=message.retain,
            )
        except ValueError as e:
            raise PublishError(str(e), topic=message.topic, broker=self.broker) from e

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(
                f"Publish failed (rc={info.rc}): {mqtt.error_string(info.rc)}",
                topic=message.topic,
                broker=self.broker,
            )

        try:
            info.wait_for_publish(timeout=timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(str(e), topic=message.topic, broker=self.broker) from e

        if not info.is_published():
            raise PublishError(
                f"No acknowledgement within {timeout}s",
                topic=message.topic,
                broker=self.broker,
            )

        return info.mid

    def close(self) -> None:
        """Disconnect and stop the network loop. Safe to call multiple times."""
        if self._closed:
            return
        self._closed = True
        self.client.disconnect()
        if self._loop_started:
            self.client.loop_stop()
            self._loop_started = False
