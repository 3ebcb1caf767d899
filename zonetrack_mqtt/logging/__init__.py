"""
Structured Logging for Zonetrack
================================

Bounded Context: Observability

JSON-structured logging with a typed event taxonomy.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from zonetrack_mqtt.logging import create_logger, LogEvent
    >>> logger = create_logger("detector")
    >>> logger.info(
    ...     event=LogEvent.CROSSING_DETECTED,
    ...     message="Vehicle V1 left Downtown",
    ...     metadata={'vehicle_id': 'V1', 'event_type': 'EXIT'}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
