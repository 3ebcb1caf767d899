"""
MQTT client wrapper for talking to the tracker.

Handles MQTT connection, publishing, optional reply wait, and disconnection.
"""

import json
import threading
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt


class MQTTCommandClient:
    """
    Short-lived MQTT client for the CLI.

    send_command() publishes a control command with QoS 1 and, when a status
    topic is given, waits for the next non-retained status message (the
    tracker's reply).
    """

    def __init__(
        self,
        broker: str = "localhost",
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[mqtt.Client] = None
    ):
        self.broker = broker
        self.port = port

        self.client = client or mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        if username and password:
            self.client.username_pw_set(username, password)

        self._reply: Optional[Dict[str, Any]] = None
        self._reply_event = threading.Event()
        self._subscribed = threading.Event()

    def _on_message(self, client, userdata, msg) -> None:
        # Retained status is the previous reply, not ours
        if msg.retain:
            return
        try:
            self._reply = json.loads(msg.payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            self._reply = {"status": "error", "data": {"error": "undecodable reply"}}
        self._reply_event.set()

    def _on_subscribe(self, client, userdata, mid, reason_codes, properties) -> None:
        self._subscribed.set()

    def _connect(self) -> None:
        try:
            self.client.connect(self.broker, self.port, keepalive=60)
        except (ConnectionRefusedError, OSError) as e:
            raise ConnectionError(
                f"Unable to connect to MQTT broker at {self.broker}:{self.port}. "
                "Is mosquitto running?"
            ) from e
        self.client.loop_start()

    def _close(self) -> None:
        self.client.disconnect()
        self.client.loop_stop()

    def publish_json(
        self,
        topic: str,
        payload: Dict[str, Any],
        qos: int = 1,
        timeout: float = 5.0
    ) -> None:
        """
        Publish one JSON message and wait until it has left the client.

        Raises:
            ConnectionError: If unable to connect to MQTT broker
            ValueError: If payload serialization fails
        """
        try:
            data = json.dumps(payload)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid message data: {e}") from e

        self._connect()
        try:
            result = self.client.publish(topic, data, qos=qos)
            result.wait_for_publish(timeout=timeout)
        finally:
            self._close()

    def send_command(
        self,
        topic: str,
        command: Dict[str, Any],
        status_topic: Optional[str] = None,
        timeout: float = 5.0,
        qos: int = 1
    ) -> Optional[Dict[str, Any]]:
        """
        Send command to the control topic.

        Args:
            topic: Command topic (e.g., "zonetrack/control/tracker_01/commands")
            command: Command dictionary (JSON serialized)
            status_topic: When set, wait for the reply on this topic
            timeout: Seconds to wait for the reply
            qos: Quality of Service (default: 1 for control commands)

        Returns:
            Reply status message, or None when not waiting / timed out

        Raises:
            ConnectionError: If unable to connect to MQTT broker
            ValueError: If command serialization fails
        """
        try:
            data = json.dumps(command)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid command data: {e}") from e

        self._reply = None
        self._reply_event.clear()
        self._subscribed.clear()

        if status_topic:
            self.client.on_message = self._on_message
            self.client.on_subscribe = self._on_subscribe

        self._connect()
        try:
            if status_topic:
                self.client.subscribe(status_topic, qos=1)
                self._subscribed.wait(timeout=timeout)

            result = self.client.publish(topic, data, qos=qos)
            result.wait_for_publish(timeout=timeout)

            if not status_topic:
                return None

            self._reply_event.wait(timeout=timeout)
            return self._reply
        finally:
            self._close()
