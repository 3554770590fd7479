"""
JSON line logger for publisher diagnostics.

Each record is a single JSON object carrying the component, the LogEvent
value and optional metadata. Exceptions passed as ``exc_info`` are
summarised as ``{"type", "message"}`` so a failed publish stays on one line:

    {"timestamp": "2025-10-24T15:30:45.123456+00:00", "level": "ERROR",
     "component": "publisher", "event": "mqtt.publish.failed",
     "message": "Error sending message",
     "metadata": {"topic": "prod-error", "qos": 1, "retain": false},
     "exception": {"type": "PublishError", "message": "No acknowledgement ..."}}
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from .events import LogEvent

Metadata = Optional[Dict[str, Any]]


class StructuredLogger:
    """
    Emits LogEvent records through a stdlib logger named
    ``mqtt_levels.<component>``.

    Safe to share between publisher workers and the paho network thread.
    """

    def __init__(
        self,
        component: str,
        level: int = logging.INFO,
        logger_name: Optional[str] = None
    ):
        self.component = component
        self.logger_name = logger_name or f"mqtt_levels.{component}"
        self.logger = logging.getLogger(self.logger_name)
        self.logger.setLevel(level)

        # Leave handlers alone if the application already configured this logger
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(JSONFormatter())
            self.logger.addHandler(handler)

    def _log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return

        record = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'event': event.value,
            'message': message,
        }
        if metadata:
            record['metadata'] = metadata
        if exc_info is not None:
            record['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }

        # default=str: metadata may hold bytes payloads or exceptions
        self.logger.log(level, json.dumps(record, default=str))

    def debug(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Metadata = None) -> None:
        self._log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        self._log(logging.WARNING, event, message, metadata, exc_info)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Metadata = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        """Log a failure; ``exc_info`` is the ConnectError/PublishError raised."""
        self._log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


class JSONFormatter(logging.Formatter):
    """Records are already JSON documents; emit them unchanged."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


def create_logger(component: str, level: int = logging.INFO) -> StructuredLogger:
    """StructuredLogger for ``component`` (e.g. "publisher", "cli")."""
    return StructuredLogger(component=component, level=level)
