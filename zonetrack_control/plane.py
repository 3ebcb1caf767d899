"""
MQTTControlPlane - MQTT Control Plane for the ZoneTracking service

Bounded Context: MQTT connection management + command reception
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Command message reception (subscribe to command topic)
  - Status publishing (publish to status topic)
  - Command delegation to CommandRegistry

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last status persisted)

Threading:
  - MQTT client runs own background thread (loop_start/loop_stop)
  - Callbacks (_on_connect, _on_message) run in MQTT thread
  - Command handlers run in MQTT thread (keep them fast!)

Topics:
  zonetrack/control/{service_id}/commands
  zonetrack/control/{service_id}/status
"""

import json
import logging
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandArgumentError, CommandNotAvailableError, CommandRegistry

logger = logging.getLogger(__name__)

COMMAND_TOPIC = "zonetrack/control/{service_id}/commands"
STATUS_TOPIC = "zonetrack/control/{service_id}/status"


class MQTTControlPlane:
    """
    MQTT Control Plane for receiving commands and publishing status.

    A handler that fails publishes an ``error`` status carrying the command
    name and the reason, so remote callers get an answer either way.

    Example:
        control_plane = MQTTControlPlane.for_service(
            service_id="tracker_01",
            broker_host="localhost",
            broker_port=1883,
        )
        control_plane.command_registry.register('status', service.handle_status, "Report status")

        if control_plane.connect(timeout=5.0):
            print("Connected to MQTT broker")
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client: Optional[mqtt.Client] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = client or mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    @classmethod
    def for_service(
        cls,
        service_id: str,
        broker_host: str,
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "MQTTControlPlane":
        """Control plane on the standard per-service topics."""
        return cls(
            broker_host=broker_host,
            broker_port=broker_port,
            command_topic=COMMAND_TOPIC.format(service_id=service_id),
            status_topic=STATUS_TOPIC.format(service_id=service_id),
            client_id=f"{service_id}_control",
            username=username,
            password=password,
        )

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker with timeout.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            logger.info(f"Connecting to MQTT broker: {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                logger.info("MQTT Control Plane connected")
                return True

            logger.error(f"Connection timeout after {timeout}s")
            return False

        except (OSError, ValueError) as e:
            logger.error(f"Error connecting to MQTT: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from MQTT broker. Safe to call multiple times."""
        if self._running:
            logger.info("Disconnecting from MQTT broker")
            self.publish_status("disconnected")
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
            self._connected.clear()
            logger.info("MQTT Control Plane disconnected")

    def publish_status(self, status: str, data: Optional[Dict[str, Any]] = None) -> None:
        """
        Publish status update to status topic (QoS 1, retained).

        Args:
            status: Status string (e.g., "running", "zones_list", "error")
            data: Optional JSON-serializable payload
        """
        message: Dict[str, Any] = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if data is not None:
            message["data"] = data

        try:
            self.client.publish(
                self.status_topic,
                json.dumps(message, default=str),
                qos=1,
                retain=True,  # Last status retained for new subscribers
            )
            logger.debug(f"Status published: {status}")
        except (TypeError, ValueError, OSError, RuntimeError) as e:
            logger.error(f"Error publishing status: {e}")

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"Connection failed ({reason_code})")
            self._connected.clear()
            return

        logger.info("Connected to broker")
        client.subscribe(self.command_topic, qos=1)
        logger.info(f"Subscribed to: {self.command_topic} (QoS 1)")

        self.publish_status("connected")
        self._connected.set()

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"Unexpected disconnection ({reason_code})")
        else:
            logger.info("Disconnected from broker")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        self.handle_command(msg.payload)

    def _reply_error(self, reason: str, command: Optional[str] = None, **extra: Any) -> None:
        data: Dict[str, Any] = {"error": reason}
        if command is not None:
            data["command"] = command
        data.update(extra)
        self.publish_status("error", data)

    def handle_command(self, payload: bytes) -> None:
        """
        Decode and execute one command payload.

        Exposed so commands can be driven without a broker.
        """
        try:
            command_data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Undecodable command payload {payload!r}: {e}")
            self._reply_error("invalid JSON")
            return

        if not isinstance(command_data, dict):
            logger.warning("Command payload is not a JSON object")
            self._reply_error("command payload must be an object")
            return

        command = str(command_data.get("command", "")).lower()
        if not command:
            logger.warning("Command payload without a command name")
            self._reply_error("missing 'command'")
            return

        logger.info(f"Command received: {command}")
        try:
            self.command_registry.execute(command, command_data)
        except CommandNotAvailableError as e:
            logger.warning(str(e))
            self._reply_error(
                str(e), command,
                available_commands=sorted(self.command_registry.available_commands),
            )
        except CommandArgumentError as e:
            logger.warning(f"Bad arguments for '{command}': {e}")
            self._reply_error(str(e), command)
        except Exception as e:
            logger.error(f"Command '{command}' failed: {e}", exc_info=True)
            self._reply_error(str(e), command)
        else:
            logger.debug(f"Command '{command}' done")
