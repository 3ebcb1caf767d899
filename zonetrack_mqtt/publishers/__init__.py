"""
MQTT Publishers
==============

Bounded Context: Message Production

Publishers for raw positions and zone crossing events.

Public API
----------
    BasePublisher: Abstract publisher (connection management)
    PositionPublisher: Raw position publisher (QoS 0)
    CrossingEventPublisher: Crossing event publisher (QoS 1)
"""

from .base import BasePublisher
from .position import PositionPublisher
from .crossing import CrossingEventPublisher

__all__ = [
    'BasePublisher',
    'PositionPublisher',
    'CrossingEventPublisher',
]
