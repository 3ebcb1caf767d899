"""
Structured JSON Logger
=====================

Bounded Context: Observability Infrastructure

Every record is one JSON object per line:

    {
        "timestamp": "2025-10-24T15:30:45.123456+00:00",
        "level": "INFO",
        "component": "detector",
        "event": "crossing.detected",
        "message": "taxi-7 crossed from Downtown to Midtown",
        "metadata": {"vehicle_id": "taxi-7", "event_type": "CROSSING"}
    }

Records go through the standard logging module under the name
"zonetrack.<component>", so handlers installed by the host application
(basicConfig, file handlers, pytest's caplog) see them as well.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from .events import LogEvent

LOGGER_PREFIX = "zonetrack"


class _PassThrough(logging.Formatter):
    """The message is already JSON; emit it untouched."""

    def format(self, record: logging.LogRecord) -> str:
        return record.getMessage()


class StructuredLogger:
    """
    JSON logger keyed by LogEvent.

    Usage:
        logger = StructuredLogger("zone_directory")
        logger.warning(
            event=LogEvent.ZONE_SKIPPED,
            message="Skipping zone with invalid boundary",
            metadata={'zone_id': 'z-7', 'reason': 'boundary ring is empty'}
        )

    Thread Safety:
        Inherits the locking of the standard logging module.
    """

    def __init__(self, component: str, level: int = logging.INFO):
        self.component = component
        self.logger = logging.getLogger(f"{LOGGER_PREFIX}.{component}")
        self.logger.setLevel(level)

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(_PassThrough())
            self.logger.addHandler(handler)

    def render(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> str:
        entry: Dict[str, Any] = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': logging.getLevelName(level),
            'component': self.component,
            'event': event.value,
            'message': message,
        }
        if metadata:
            entry['metadata'] = metadata
        if exc_info is not None:
            entry['exception'] = {
                'type': type(exc_info).__name__,
                'message': str(exc_info),
            }
        return json.dumps(entry, default=str)

    def log(
        self,
        level: int,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        # Tracebacks only for errors; warnings carry the exception summary alone
        traceback = exc_info if level >= logging.ERROR else None
        self.logger.log(level, self.render(level, event, message, metadata, exc_info), exc_info=traceback)

    def debug(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.DEBUG, event, message, metadata)

    def info(self, event: LogEvent, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.log(logging.INFO, event, message, metadata)

    def warning(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        self.log(logging.WARNING, event, message, metadata, exc_info)

    def error(
        self,
        event: LogEvent,
        message: str,
        metadata: Optional[Dict[str, Any]] = None,
        exc_info: Optional[BaseException] = None
    ) -> None:
        self.log(logging.ERROR, event, message, metadata, exc_info)

    def set_level(self, level: int) -> None:
        self.logger.setLevel(level)


def create_logger(component: str, level: int = logging.INFO) -> StructuredLogger:
    """Build a StructuredLogger for one component (e.g. "detector")."""
    return StructuredLogger(component=component, level=level)
