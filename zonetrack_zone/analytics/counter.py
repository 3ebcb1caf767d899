"""
Zone Counter Module
===================

Stateful accumulator for per-zone transition statistics.

Design:
- Mutable state (counters), guarded by a lock
- Immutable snapshots (ZoneStats)
- Reset capability
"""

import threading
from collections import defaultdict
from dataclasses import dataclass, asdict
from typing import Dict, Optional

from zonetrack_zone.analytics.transitions import EventType


@dataclass(frozen=True)
class ZoneStats:
    """
    Immutable statistics snapshot for a zone.

    Attributes:
        zone_id: Zone identifier
        total_entered: Vehicles that arrived from outside all zones
        total_exited: Vehicles that left to outside all zones
        crossed_in: Vehicles that arrived from another zone
        crossed_out: Vehicles that left to another zone
    """

    zone_id: str
    total_entered: int = 0
    total_exited: int = 0
    crossed_in: int = 0
    crossed_out: int = 0

    @property
    def arrivals(self) -> int:
        return self.total_entered + self.crossed_in

    @property
    def departures(self) -> int:
        return self.total_exited + self.crossed_out

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

    def __str__(self) -> str:
        """Human-readable representation."""
        return f"{self.zone_id}: IN={self.arrivals}, OUT={self.departures}"


class ZoneCounter:
    """
    Counts transitions for every zone seen in events.

    Usage:
        counter = ZoneCounter()
        counter.record(EventType.CROSSING, previous_zone_id="a", current_zone_id="b")
        counter.get_stats("b").crossed_in  # 1
    """

    def __init__(self):
        self._counts: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self._lock = threading.Lock()

    def record(
        self,
        event_type: EventType,
        previous_zone_id: Optional[str],
        current_zone_id: Optional[str],
    ) -> None:
        """Account one transition event."""
        with self._lock:
            if event_type == EventType.ENTER:
                self._counts[current_zone_id]["total_entered"] += 1
            elif event_type == EventType.EXIT:
                self._counts[previous_zone_id]["total_exited"] += 1
            elif event_type == EventType.CROSSING:
                self._counts[previous_zone_id]["crossed_out"] += 1
                self._counts[current_zone_id]["crossed_in"] += 1

    def get_stats(self, zone_id: str) -> ZoneStats:
        """Snapshot for one zone (zeros if never seen)."""
        with self._lock:
            counts = dict(self._counts.get(zone_id, {}))
        return ZoneStats(zone_id=zone_id, **counts)

    def all_stats(self) -> Dict[str, ZoneStats]:
        """Snapshot for every zone that has seen a transition."""
        with self._lock:
            snapshot = {zone_id: dict(counts) for zone_id, counts in self._counts.items()}
        return {zone_id: ZoneStats(zone_id=zone_id, **counts) for zone_id, counts in snapshot.items()}

    def reset(self) -> None:
        """Reset all counters to zero."""
        with self._lock:
            self._counts.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._counts)
