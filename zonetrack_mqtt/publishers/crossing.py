"""
Crossing Event Publisher
========================

Bounded Context: Zone Transition Message Production

Publishes CrossingEvent messages. Defaults to QoS 1: transitions are rare
and subscribers (dashboards, WebSocket fan-out) must not miss them.
Delivery is at-least-once; subscribers tolerate duplicates.

Message Flow:
    CrossingDetector → CrossingEvent → PublishDispatcher → CrossingEventPublisher → MQTT
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import CrossingEvent
from ..logging import StructuredLogger, LogEvent


class CrossingEventPublisher(BasePublisher):
    """
    Publisher for zone crossing events.

    Example:
        >>> publisher = CrossingEventPublisher(
        ...     broker_host="localhost",
        ...     topic="zonetrack/tracker_01/crossings",
        ...     logger=logger
        ... )
        >>> publisher.connect()
        >>> publisher.publish_crossing(event)
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "zonetrack_crossing_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        client=None
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos,
            client=client
        )

    def format_message(self, event: CrossingEvent) -> Dict[str, Any]:
        """Format CrossingEvent to JSON-compatible dict."""
        formatted = event.to_dict()
        self.logger.debug(
            event=LogEvent.CROSSING_SERIALIZED,
            message="Serialized crossing event",
            metadata={'vehicle_id': event.vehicle_id, 'event_type': event.event_type.value}
        )
        return formatted

    def publish_crossing(self, event: CrossingEvent) -> bool:
        """
        Publish a crossing event.

        Returns:
            True if published successfully, False otherwise
        """
        success = self.publish(self.format_message(event))

        if success:
            self.logger.info(
                event=LogEvent.CROSSING_PUBLISHED,
                message=f"Published crossing: {event.describe()}",
                metadata={
                    'vehicle_id': event.vehicle_id,
                    'event_type': event.event_type.value,
                    'previous_zone_id': event.previous_zone_id,
                    'current_zone_id': event.current_zone_id,
                }
            )

        return success
