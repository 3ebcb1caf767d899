"""
Position Publisher
==================

Bounded Context: Raw Position Message Production

Publishes a PositionMessage for every processed update. QoS 0: positions
are superseded by the next one, losing one is harmless.

Message Flow:
    CrossingDetector → PositionMessage → PublishDispatcher → PositionPublisher → MQTT
"""

from typing import Dict, Any, Optional
from .base import BasePublisher
from ..schemas import PositionMessage
from ..logging import StructuredLogger, LogEvent


class PositionPublisher(BasePublisher):
    """
    Publisher for raw vehicle positions.

    Example:
        >>> publisher = PositionPublisher(
        ...     broker_host="localhost",
        ...     topic="zonetrack/tracker_01/positions",
        ...     logger=logger
        ... )
        >>> publisher.connect()
        >>> publisher.publish_position(message)
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "zonetrack_position_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
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

    def format_message(self, position_msg: PositionMessage) -> Dict[str, Any]:
        """Format PositionMessage to JSON-compatible dict."""
        formatted = position_msg.to_dict()
        self.logger.debug(
            event=LogEvent.POSITION_SERIALIZED,
            message="Serialized position message",
            metadata={'vehicle_id': position_msg.vehicle_id}
        )
        return formatted

    def publish_position(self, position_msg: PositionMessage) -> bool:
        """
        Publish a position message.

        Returns:
            True if published successfully, False otherwise
        """
        return self.publish(self.format_message(position_msg))
