"""
Leveled Publisher
=================

Bounded Context: Leveled Message Production

Publishes severity-tagged messages on environment-scoped topics
(``{environment}-{severity}``) over one lazily created broker connection.

Message Flow:
    pub.error("disk full") → worker → connect if needed → send → ack/log

Design:
- Severity methods are generated from the Severity table and share log()
- Each call returns a Future[bool]; ignore it or call .result() to wait
- Connection establishment is single-flight: concurrent callers share one
  connect attempt and its outcome
- Connect/publish failures are logged, counted and passed to error
  listeners; they never propagate to the caller

Example:
    >>> from mqtt_levels import LevelPublisher, PublisherConfig
    >>> with LevelPublisher(PublisherConfig(environment="prod")) as pub:
    ...     pub.error("disk full")
    ...     delivered = pub.usage("42 requests").result(timeout=5)
"""

import atexit
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict, Iterable, Optional

from ..config import PublisherConfig
from ..errors import ConnectError, PublishError, PublisherError
from ..logging import LogEvent, StructuredLogger, create_logger
from ..schemas import OutboundMessage, Payload, Severity
from .connection import BrokerConnection

ErrorListener = Callable[[PublisherError], None]


class _ConnectAttempt:
    """In-flight connect shared by every caller that arrives while it runs."""

    def __init__(self):
        self.done = threading.Event()
        self.succeeded = False


def _severity_method(severity: Severity):
    def publish_at_level(self, message: Payload, qos: int = 0, retain: bool = False) -> "Future[bool]":
        return self.log(severity, message, qos=qos, retain=retain)

    publish_at_level.__name__ = severity.value
    publish_at_level.__qualname__ = f"LevelPublisher.{severity.value}"
    publish_at_level.__doc__ = (
        f"Publish ``message`` to the ``{{environment}}-{severity.value}`` topic.\n\n"
        "Returns a future resolving to True once the broker acknowledges."
    )
    return publish_at_level


class LevelPublisher:
    """
    Leveled MQTT publisher.

    Attributes:
        config: Immutable publisher configuration
        logger: Structured logger for console diagnostics

    Thread Safety:
        Severity methods may be called from any thread. Publishes run on an
        internal thread pool; paho runs its own network thread.
    """

    def __init__(
        self,
        config: Optional[PublisherConfig] = None,
        logger: Optional[StructuredLogger] = None,
        error_listeners: Optional[Iterable[ErrorListener]] = None
    ):
        """
        Initialize publisher. Performs no network I/O.

        Args:
            config: Publisher configuration (default: from environment)
            logger: Structured logger (default: "publisher" component)
            error_listeners: Callables notified of every ConnectError/PublishError
        """
        self.config = config if config is not None else PublisherConfig.from_env()
        self.logger = logger or create_logger("publisher")

        # Connection state, guarded by _lock
        self._lock = threading.Lock()
        self._connection: Optional[BrokerConnection] = None
        self._attempt: Optional[_ConnectAttempt] = None
        self._closing = False
        self._closed = False
        self._pending = 0

        self._workers = set()
        self._executor = ThreadPoolExecutor(
            max_workers=self.config.max_workers,
            thread_name_prefix="mqtt-levels",
            initializer=self._register_worker,
        )
        self._error_listeners = list(error_listeners or [])
        self._stats = {
            'published': 0,
            'failed': 0,
            'connect_attempts': 0,
            'connect_failures': 0,
            'backlog_dropped': 0,
        }

        self.logger.info(
            event=LogEvent.PUBLISHER_CREATED,
            message=f"MQTT client created for {self.config.environment}",
            metadata={
                'environment': self.config.environment,
                'broker': self.config.url,
            }
        )

    def __enter__(self) -> "LevelPublisher":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    # ===== Severity methods =====

    debug = _severity_method(Severity.DEBUG)
    info = _severity_method(Severity.INFO)
    notice = _severity_method(Severity.NOTICE)
    warning = _severity_method(Severity.WARNING)
    error = _severity_method(Severity.ERROR)
    critical = _severity_method(Severity.CRITICAL)
    alert = _severity_method(Severity.ALERT)
    emergency = _severity_method(Severity.EMERGENCY)
    usage = _severity_method(Severity.USAGE)

    def log(
        self,
        severity: Severity,
        message: Payload,
        qos: int = 0,
        retain: bool = False
    ) -> "Future[bool]":
        """
        Schedule ``message`` on the topic for ``severity``.

        Args:
            severity: Severity member or its name (e.g. "error")
            message: Text, bytes, or JSON-serializable dict/list
            qos: Quality of Service (0, 1 or 2)
            retain: MQTT retain flag

        Returns:
            Future resolving to True if the broker acknowledged the message,
            False if it was dropped. Never resolves with an exception for
            broker failures.

        Raises:
            ValueError: Unknown severity or invalid QoS
            TypeError: Unsupported payload type
        """
        outbound = OutboundMessage.for_severity(
            self.config.environment, Severity(severity), message, qos=qos, retain=retain
        )

        with self._lock:
            accepting = not self._closing
            backlog_full = accepting and self._pending >= self.config.max_backlog
            if accepting and not backlog_full:
                self._pending += 1
                try:
                    return self._executor.submit(self._run_queued, outbound)
                except RuntimeError:
                    # interpreter shutdown stopped the worker pool
                    self._pending -= 1
            elif backlog_full:
                self._stats['failed'] += 1
                self._stats['backlog_dropped'] += 1

        if backlog_full:
            self._report(
                PublishError(
                    f"Backlog full ({self.config.max_backlog} messages pending)",
                    topic=outbound.topic,
                    broker=self.config.url,
                ),
                event=LogEvent.PUBLISHER_BACKLOG_FULL,
                message="Publish backlog full, message dropped",
                metadata={'topic': outbound.topic, 'max_backlog': self.config.max_backlog}
            )
            return self._resolved(False)

        self.logger.warning(
            event=LogEvent.PUBLISHER_REJECTED,
            message="Publisher is not accepting messages, message dropped",
            metadata={'topic': outbound.topic}
        )
        return self._resolved(False)

    @staticmethod
    def _resolved(value: bool) -> "Future[bool]":
        future: "Future[bool]" = Future()
        future.set_result(value)
        return future

    def _register_worker(self) -> None:
        self._workers.add(threading.get_ident())

    def _run_queued(self, message: OutboundMessage) -> bool:
        try:
            return self._deliver(message)
        finally:
            with self._lock:
                self._pending -= 1

    def topic_for(self, severity: Severity) -> str:
        """Topic name used for ``severity`` in this environment."""
        return self.config.topic_for(Severity(severity).suffix)

    # ===== Connection lifecycle =====

    def connect(self) -> bool:
        """
        Ensure a live broker connection.

        Concurrent callers share a single in-flight attempt. Failures are
        logged and reported to error listeners, never raised.

        Returns:
            True if a connection is live afterwards, False otherwise
        """
        stale = None
        with self._lock:
            if self._closed:
                return False
            if self._connection is not None and self._connection.connected:
                return True

            attempt = self._attempt
            leader = attempt is None
            if leader:
                attempt = self._attempt = _ConnectAttempt()
                stale, self._connection = self._connection, None
                self._stats['connect_attempts'] += 1

        if not leader:
            attempt.done.wait()
            return attempt.succeeded

        try:
            if stale is not None:
                stale.close()
            attempt.succeeded = self._open_connection()
        finally:
            with self._lock:
                self._attempt = None
            attempt.done.set()

        return attempt.succeeded

    def _open_connection(self) -> bool:
        self.logger.info(
            event=LogEvent.MQTT_CONNECTING,
            message="Connecting to MQTT broker",
            metadata={'broker': self.config.url}
        )

        try:
            connection = BrokerConnection(self.config, self.logger)
            connection.open()
        except ConnectError as e:
            with self._lock:
                self._stats['connect_failures'] += 1
            self._report(
                e,
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Error during connection",
                metadata={'broker': self.config.url}
            )
            return False

        with self._lock:
            if not self._closed:
                self._connection = connection
                return True

        # close() finished while the handshake was running
        connection.close()
        return False

    def close(self, wait: bool = True) -> None:
        """
        Drain scheduled publishes, then disconnect from the broker.

        Safe to call multiple times. Messages scheduled after close() are
        dropped (their futures resolve to False).

        Args:
            wait: Block until scheduled publishes finish. Ignored (treated
                as False) when called from a publisher worker, e.g. from an
                error listener or a future's done-callback; publishes still
                queued then find the connection closed and resolve to False.
        """
        with self._lock:
            if self._closing:
                return
            self._closing = True

        on_worker = threading.get_ident() in self._workers
        try:
            self._executor.shutdown(wait=wait and not on_worker)
        finally:
            with self._lock:
                self._closed = True
                connection, self._connection = self._connection, None

            if connection is not None:
                connection.close()

        self.logger.info(
            event=LogEvent.PUBLISHER_CLOSED,
            message="Publisher closed",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        """Check if currently connected to broker."""
        connection = self._connection
        return connection is not None and connection.connected

    # ===== Publishing =====

    def publish(
        self,
        topic: str,
        message: Payload,
        qos: int = 0,
        retain: bool = False
    ) -> bool:
        """
        Publish to ``topic`` on the calling thread and wait for the outcome.

        Connects first if there is no live connection.

        Returns:
            True if the broker acknowledged the message, False otherwise

        Raises:
            ValueError: Invalid topic or QoS
            TypeError: Unsupported payload type
        """
        return self._deliver(OutboundMessage(topic=topic, payload=message, qos=qos, retain=retain))

    def _deliver(self, message: OutboundMessage) -> bool:
        metadata = {'topic': message.topic, 'qos': message.qos, 'retain': message.retain}
        try:
            connection = self._connection
            if connection is None or not connection.connected:
                self.connect()
                connection = self._connection

            if connection is None or not connection.connected:
                raise PublishError(
                    "Not connected to broker",
                    topic=message.topic,
                    broker=self.config.url,
                )

            mid = connection.send(message, timeout=self.config.publish_timeout)

        except PublishError as e:
            self._count_failure()
            self._report(
                e,
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Error sending message",
                metadata=metadata
            )
            return False

        except Exception as e:
            self._count_failure()
            error = PublishError(
                f"Unexpected error: {e}", topic=message.topic, broker=self.config.url
            )
            error.__cause__ = e
            self._report(
                error,
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message="Unexpected error publishing message",
                metadata=metadata
            )
            return False

        with self._lock:
            self._stats['published'] += 1

        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message=f"Message sent to {message.topic}",
            metadata={**metadata, 'mid': mid}
        )
        return True

    def _count_failure(self) -> None:
        with self._lock:
            self._stats['failed'] += 1

    # ===== Error channel =====

    def add_error_listener(self, listener: ErrorListener) -> None:
        """
        Register a callable notified of every ConnectError and PublishError.

        Listeners run on publisher worker threads; keep them fast.
        """
        self._error_listeners.append(listener)

    def remove_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.remove(listener)

    def _report(
        self,
        error: PublisherError,
        event: LogEvent,
        message: str,
        metadata: Dict[str, Any]
    ) -> None:
        self.logger.error(event=event, message=message, metadata=metadata, exc_info=error)

        for listener in list(self._error_listeners):
            try:
                listener(error)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.LISTENER_ERROR,
                    message="Error listener raised",
                    metadata={'listener': repr(listener)},
                    exc_info=e
                )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get publisher statistics.

        Returns:
            Dictionary with message counters and connection status

        Example:
            >>> stats = publisher.get_stats()
            >>> print(f"Published {stats['published']}, dropped {stats['failed']}")
        """
        with self._lock:
            stats = dict(self._stats)
        stats.update({
            'connected': self.is_connected(),
            'environment': self.config.environment,
            'broker': self.config.url,
        })
        return stats


_default_publisher: Optional[LevelPublisher] = None
_default_lock = threading.Lock()


def get_publisher() -> LevelPublisher:
    """
    Process-wide publisher configured from the environment.

    Created on first use and closed at interpreter exit.
    """
    global _default_publisher
    with _default_lock:
        if _default_publisher is None:
            _default_publisher = LevelPublisher()
            atexit.register(_default_publisher.close)
        return _default_publisher
