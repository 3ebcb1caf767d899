"""
zonetrack_control - Control Plane for the ZoneTracking service

Bounded Context: MQTT-based command-and-control
Responsibilities:
  - MQTT connection management (Control Plane)
  - Command registration and argument validation
  - Command execution delegation

Architecture:
  - CommandRegistry: Explicit registration pattern
  - MQTTControlPlane: MQTT client + command reception
  - QoS 1 for control commands (at-least-once delivery)
"""

from .registry import (
    CommandArgumentError,
    CommandNotAvailableError,
    CommandRegistry,
    optional_int,
    require_arg,
)
from .plane import COMMAND_TOPIC, STATUS_TOPIC, MQTTControlPlane

__all__ = [
    "CommandRegistry",
    "CommandNotAvailableError",
    "CommandArgumentError",
    "require_arg",
    "optional_int",
    "MQTTControlPlane",
    "COMMAND_TOPIC",
    "STATUS_TOPIC",
]
