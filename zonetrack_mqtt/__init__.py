"""
Zonetrack MQTT Communication Package
====================================

Bounded Context: Communication Protocol for Zone Tracking

MQTT-based messaging between vehicles (position ingest), the tracker
(crossing detection) and downstream consumers (dashboards, WebSocket
fan-out).

Architecture:
- schemas/: Immutable data structures with validation
- publishers/: Message producers (PositionPublisher, CrossingEventPublisher)
- subscriber: Message consumers (PositionIngestSubscriber, MessageSubscriber)
- logging/: Structured JSON logging for observability

Public API
----------
Schemas:
    Coordinates, Timestamp
    PositionUpdate, PositionMessage
    CrossingEvent

Publishers:
    PositionPublisher, CrossingEventPublisher
    BasePublisher (for custom publishers)

Subscribers:
    PositionIngestSubscriber, MessageSubscriber

Logging:
    LogEvent, StructuredLogger, create_logger

Example (downstream consumer):
    >>> from zonetrack_mqtt import MessageSubscriber, create_logger
    >>> subscriber = MessageSubscriber(
    ...     broker_host="localhost",
    ...     position_topic="zonetrack/tracker_01/positions",
    ...     crossing_topic="zonetrack/tracker_01/crossings",
    ...     on_position=None,
    ...     on_crossing=lambda event: print(event.describe()),
    ...     logger=create_logger("dashboard")
    ... )
    >>> subscriber.connect()
"""

# Version
__version__ = "1.0.0"

# Schemas
from .schemas import (
    Coordinates,
    Timestamp,
    PositionUpdate,
    PositionMessage,
    CrossingEvent,
)

# Publishers
from .publishers import (
    BasePublisher,
    PositionPublisher,
    CrossingEventPublisher,
)

# Subscribers
from .subscriber import MessageSubscriber, PositionIngestSubscriber

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    '__version__',
    # Schemas
    'Coordinates',
    'Timestamp',
    'PositionUpdate',
    'PositionMessage',
    'CrossingEvent',
    # Publishers
    'BasePublisher',
    'PositionPublisher',
    'CrossingEventPublisher',
    # Subscribers
    'MessageSubscriber',
    'PositionIngestSubscriber',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
