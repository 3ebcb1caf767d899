"""
MQTT Subscribers
================

Bounded Context: Message Consumption

Two consumers share one connection/dispatch core:

- PositionIngestSubscriber: tracker side. Listens on the ingest topic,
  validates payloads into PositionUpdate and hands valid ones to a sink
  (the worker pool). Invalid payloads are rejected with a structured log
  and never reach the core.
- MessageSubscriber: downstream side (dashboards, WebSocket fan-out).
  Listens on the position and crossing topics and invokes typed callbacks.

Message Flow:
    Vehicle → ingest topic → PositionIngestSubscriber → UpdateWorkerPool
    Tracker → position/crossing topics → MessageSubscriber → callbacks

Design Note:
    Callbacks run in the paho network thread. Keep them fast or dispatch to
    worker threads if processing is heavy.
"""

import json
import threading
from typing import Any, Callable, Dict, Optional
import paho.mqtt.client as mqtt

from .schemas import CrossingEvent, PositionMessage, PositionUpdate
from .logging import StructuredLogger, LogEvent


class _BaseSubscriber:
    """
    Connection management and topic routing for subscribers.

    Subclasses register handlers per topic filter with _route(); each handler
    receives the decoded JSON payload.
    """

    def __init__(
        self,
        broker_host: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "zonetrack_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        client: Optional[mqtt.Client] = None
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id
        )
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        self._routes: Dict[str, Callable[[Dict[str, Any]], None]] = {}
        self._connected = threading.Event()
        self._running = False
        self._stats_lock = threading.Lock()
        self._counts: Dict[str, int] = {'received': 0, 'rejected': 0}

    def _route(self, topic_filter: str, handler: Callable[[Dict[str, Any]], None]) -> None:
        self._routes[topic_filter] = handler

    def _count(self, key: str) -> None:
        with self._stats_lock:
            self._counts[key] = self._counts.get(key, 0) + 1

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        """Subscribe to every routed topic once connected (also on reconnect)."""
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker ({reason_code})",
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return

        self._connected.set()
        for topic_filter in self._routes:
            client.subscribe(topic_filter, qos=self.qos)

        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker and subscribed to topics",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'topics': list(self._routes)
            }
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'reason_code': str(reason_code)
            }
        )

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        self.handle_payload(msg.topic, msg.payload)

    def handle_payload(self, topic: str, payload: bytes) -> None:
        """
        Decode one raw payload and route it by topic.

        Exposed so the routing can be driven without a broker.
        """
        try:
            data = json.loads(payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self._count('rejected')
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode JSON message",
                exc_info=e,
                metadata={'topic': topic}
            )
            return

        for topic_filter, handler in self._routes.items():
            if mqtt.topic_matches_sub(topic_filter, topic):
                try:
                    handler(data)
                except Exception as e:
                    self.logger.error(
                        event=LogEvent.PROCESSING_ERROR,
                        message="Error handling message",
                        exc_info=e,
                        metadata={'topic': topic}
                    )
                return

        self.logger.warning(
            event=LogEvent.DESERIALIZATION_ERROR,
            message=f"Received message from unknown topic: {topic}"
        )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker and start the network loop.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()

            if self._connected.wait(timeout=timeout):
                self._running = True
                return True

            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'timeout': timeout}
            )
            return False

        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return False

    def stop(self) -> None:
        """Stop network loop and disconnect."""
        self._running = False
        self.client.loop_stop()
        self.client.disconnect()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            stats = dict(self._counts)
        stats.update({
            'connected': self._connected.is_set(),
            'running': self._running,
            'topics': list(self._routes),
            'broker': f"{self.broker_host}:{self.broker_port}"
        })
        return stats


class PositionIngestSubscriber(_BaseSubscriber):
    """
    Receives inbound position updates for the tracker.

    Attributes:
        ingest_topic: Topic filter vehicles publish to (wildcards allowed)
        on_update: Sink for validated updates; returns False when it had to
            drop the update (e.g. worker queue full)

    Example:
        >>> subscriber = PositionIngestSubscriber(
        ...     broker_host="localhost",
        ...     ingest_topic="zonetrack/tracker_01/ingest",
        ...     on_update=pool.submit,
        ...     logger=logger
        ... )
        >>> subscriber.connect()
    """

    def __init__(
        self,
        broker_host: str,
        ingest_topic: str,
        on_update: Callable[[PositionUpdate], bool],
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "zonetrack_ingest",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        client: Optional[mqtt.Client] = None
    ):
        super().__init__(
            broker_host=broker_host,
            logger=logger,
            broker_port=broker_port,
            client_id=client_id,
            username=username,
            password=password,
            qos=qos,
            client=client
        )
        self.ingest_topic = ingest_topic
        self.on_update = on_update
        self._route(ingest_topic, self._handle_update)

    def _handle_update(self, data: Dict[str, Any]) -> None:
        try:
            update = PositionUpdate.from_dict(data)
        except ValueError as e:
            self._count('rejected')
            self.logger.warning(
                event=LogEvent.POSITION_REJECTED,
                message=f"Rejected position update: {e}",
                metadata={'data': data}
            )
            return

        self._count('received')
        self.logger.debug(
            event=LogEvent.POSITION_RECEIVED,
            message="Received position update",
            metadata={'vehicle_id': update.vehicle_id}
        )
        self.on_update(update)


class MessageSubscriber(_BaseSubscriber):
    """
    Downstream consumer of raw positions and crossing events.

    Example:
        >>> subscriber = MessageSubscriber(
        ...     broker_host="localhost",
        ...     position_topic="zonetrack/tracker_01/positions",
        ...     crossing_topic="zonetrack/tracker_01/crossings",
        ...     on_position=lambda msg: print(msg.vehicle_id, msg.zone_name),
        ...     on_crossing=lambda event: print(event.describe()),
        ...     logger=logger
        ... )
        >>> subscriber.connect()
    """

    def __init__(
        self,
        broker_host: str,
        position_topic: str,
        crossing_topic: str,
        on_position: Optional[Callable[[PositionMessage], None]],
        on_crossing: Optional[Callable[[CrossingEvent], None]],
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "zonetrack_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        client: Optional[mqtt.Client] = None
    ):
        super().__init__(
            broker_host=broker_host,
            logger=logger,
            broker_port=broker_port,
            client_id=client_id,
            username=username,
            password=password,
            qos=qos,
            client=client
        )
        self.position_topic = position_topic
        self.crossing_topic = crossing_topic
        self.on_position = on_position
        self.on_crossing = on_crossing
        self._counts.update({'positions': 0, 'crossings': 0})

        if on_position is not None:
            self._route(position_topic, self._handle_position)
        if on_crossing is not None:
            self._route(crossing_topic, self._handle_crossing)

    def _handle_position(self, data: Dict[str, Any]) -> None:
        try:
            message = PositionMessage.from_dict(data)
        except ValueError as e:
            self._count('rejected')
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Position message failed schema validation",
                exc_info=e,
                metadata={'data': data}
            )
            return

        self._count('positions')
        self.on_position(message)

    def _handle_crossing(self, data: Dict[str, Any]) -> None:
        try:
            event = CrossingEvent.from_dict(data)
        except ValueError as e:
            self._count('rejected')
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message="Crossing event failed schema validation",
                exc_info=e,
                metadata={'data': data}
            )
            return

        self._count('crossings')
        self.logger.info(
            event=LogEvent.CROSSING_RECEIVED,
            message=f"Received crossing: {event.describe()}",
            metadata={'vehicle_id': event.vehicle_id, 'event_type': event.event_type.value}
        )
        self.on_crossing(event)
