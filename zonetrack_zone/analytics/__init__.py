"""
Analytics Layer
===============

Bounded Context: Transition rules and statistics tracking.

Responsibilities:
- Classify zone membership changes (ENTER / EXIT / CROSSING)
- Accumulate per-zone transition counts (mutable state)
- Generate immutable statistics snapshots

Design Philosophy:
- Pure transition rules (no state)
- Mutable accumulators (ZoneCounter)
- Immutable outputs (ZoneStats)
"""

from zonetrack_zone.analytics.transitions import (
    EventType,
    VehiclePhase,
    classify_transition,
    phase_of,
)
from zonetrack_zone.analytics.counter import ZoneCounter, ZoneStats

__all__ = [
    "EventType",
    "VehiclePhase",
    "classify_transition",
    "phase_of",
    "ZoneCounter",
    "ZoneStats",
]
