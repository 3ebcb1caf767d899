"""
Base MQTT Publisher
==================

Bounded Context: MQTT Infrastructure

Shared plumbing for every outbound topic: one paho client per publisher,
a connection flag driven by the paho callbacks, and a publish path that
reports failure through its return value and the failure counter.

Architecture:
    BasePublisher (abstract)
        ↓
    PositionPublisher (QoS 0), CrossingEventPublisher (QoS 1)

Subclasses only decide what a payload looks like (format_message).
Reconnection after a dropped link is left to paho's network loop.
"""

import json
import threading
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional
import paho.mqtt.client as mqtt

from ..logging import StructuredLogger, LogEvent


class BasePublisher(ABC):
    """
    Abstract MQTT publisher bound to a single topic.

    Attributes:
        topic: Destination topic
        qos: QoS used for every publish on this topic
        client: paho client (VERSION2 callbacks)

    Thread Safety:
        publish() may be called from any worker thread; counters are
        guarded by a lock and the connection flag is a threading.Event.
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        topic: str,
        client_id: str,
        logger: StructuredLogger,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        client: Optional[mqtt.Client] = None
    ):
        """
        Args:
            broker_host: MQTT broker hostname
            broker_port: MQTT broker port
            topic: Topic every message goes to
            client_id: Client identifier presented to the broker
            logger: Structured logger
            username: Broker username (optional)
            password: Broker password (optional)
            qos: 0 for superseded data, 1 for events that must arrive
            client: Pre-built client (tests inject a fake here)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topic = topic
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        if client is None:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
            if username and password:
                client.username_pw_set(username, password)
        self.client = client
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._lock = threading.Lock()
        self._sent = 0
        self._failed = 0

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    # paho callbacks

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Broker refused connection ({reason_code})",
                metadata={'broker': self.broker, 'topic': self.topic}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message=f"Publisher ready on {self.topic}",
            metadata={'broker': self.broker, 'client_id': self.client_id, 'qos': self.qos}
        )

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Publisher lost broker connection",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    # lifecycle

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Open the connection and start paho's network loop.

        Returns:
            True once the broker acknowledged within timeout, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
        except (OSError, ValueError) as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Broker unreachable",
                metadata={'broker': self.broker},
                exc_info=e
            )
            return False

        self.client.loop_start()
        if self._connected.wait(timeout=timeout):
            return True

        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message=f"No CONNACK within {timeout}s",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        self.client.loop_stop()
        self.client.disconnect()
        self._connected.clear()
        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message=f"Publisher on {self.topic} closed",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    # publishing

    @abstractmethod
    def format_message(self, *args, **kwargs) -> Dict[str, Any]:
        """Turn a domain message into a JSON-compatible dict."""

    def _reject(
        self,
        event: LogEvent,
        message: str,
        exc: Optional[BaseException] = None
    ) -> bool:
        with self._lock:
            self._failed += 1
        log = self.logger.error if exc is not None else self.logger.warning
        log(event=event, message=message, metadata={'topic': self.topic}, exc_info=exc)
        return False

    def _encode(self, message_data: Dict[str, Any]) -> Optional[str]:
        try:
            return json.dumps(message_data)
        except (TypeError, ValueError) as e:
            self._reject(LogEvent.SERIALIZATION_ERROR, "Payload is not JSON serializable", e)
            return None

    def publish(self, message_data: Dict[str, Any], retain: bool = False) -> bool:
        """
        Hand a formatted message to the client.

        Never raises: every failure is logged, counted and reported as False.
        """
        if not self._connected.is_set():
            return self._reject(LogEvent.MQTT_PUBLISH_FAILED, "Not connected, message dropped")

        payload = self._encode(message_data)
        if payload is None:
            return False

        try:
            info = self.client.publish(self.topic, payload=payload, qos=self.qos, retain=retain)
        except (OSError, ValueError, RuntimeError) as e:
            return self._reject(LogEvent.MQTT_PUBLISH_ERROR, "Client raised during publish", e)

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            return self._reject(LogEvent.MQTT_PUBLISH_FAILED, f"Client refused publish (rc={info.rc})")

        with self._lock:
            self._sent += 1
            sent = self._sent
        self.logger.debug(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Message handed to client",
            metadata={'topic': self.topic, 'message_count': sent}
        )
        return True

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            sent, failed = self._sent, self._failed
        return {
            'topic': self.topic,
            'broker': self.broker,
            'connected': self._connected.is_set(),
            'message_count': sent,
            'failed_count': failed,
        }
