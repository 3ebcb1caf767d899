"""
Zone Directory - atomically refreshed, read-mostly zone snapshot.

This module provides the ZoneDirectory class which holds the current set of
valid zones and answers "which zone contains this point?".

Refresh:
- Fetches raw rows from a zone source (list_zones() -> [{id, name, boundary}])
- Validates each row with validate_zone(); invalid rows are skipped and logged
- Replaces the snapshot in one reference assignment

A failed fetch keeps the previous snapshot: detections degrade to stale zones
rather than to no zones.

Thread Safety:
- Readers take the current snapshot reference without locking; a snapshot is
  never mutated after publication, so a reader sees the old or the new set,
  never a mix
- refresh() calls are serialized by a lock
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Protocol, Tuple

from zonetrack_zone import Zone, ZoneDetector, ZoneValidation, validate_zone
from zonetrack_zone.geometry.shapes import Point
from zonetrack_mqtt.logging import LogEvent, StructuredLogger, create_logger


class ZoneSource(Protocol):
    """Anything that can list raw zone rows."""

    def list_zones(self) -> List[Mapping[str, Any]]:
        ...


class _Snapshot(NamedTuple):
    zones: Tuple[Zone, ...]
    by_id: Dict[str, Zone]


@dataclass(frozen=True)
class RefreshReport:
    """
    Outcome of one refresh attempt.

    Attributes:
        success: False when the source fetch failed (previous zones kept)
        loaded: Number of zones in the directory after this attempt
        skipped: Rejected rows with their reasons
        repaired: Ids of zones whose ring had to be closed
        error: Fetch error message when success is False
        refreshed_at: Epoch seconds of the attempt
    """

    success: bool
    loaded: int
    skipped: Tuple[ZoneValidation, ...] = field(default_factory=tuple)
    repaired: Tuple[str, ...] = field(default_factory=tuple)
    error: Optional[str] = None
    refreshed_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "loaded": self.loaded,
            "skipped": [v.to_dict() for v in self.skipped],
            "repaired": list(self.repaired),
            "error": self.error,
            "refreshed_at": self.refreshed_at,
        }


class ZoneDirectory:
    """
    Current zone set, replaced wholesale on refresh.

    Usage:
        directory = ZoneDirectory(source=SqliteZoneStore("zones.db"))
        report = directory.refresh()
        zone_id = directory.find_containing((-73.98, 40.75))
    """

    def __init__(
        self,
        source: ZoneSource,
        logger: Optional[StructuredLogger] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._source = source
        self._logger = logger or create_logger("zone_directory")
        self._clock = clock
        self._snapshot = _Snapshot(zones=(), by_id={})
        self._refresh_lock = threading.Lock()
        self._last_report: Optional[RefreshReport] = None

    def refresh(self) -> RefreshReport:
        """
        Reload zones from the source.

        Never raises: a fetch failure is logged and reported, and the
        previous snapshot stays in place.
        """
        with self._refresh_lock:
            now = self._clock()
            try:
                rows = list(self._source.list_zones())
            except Exception as e:
                loaded = len(self._snapshot.zones)
                self._logger.error(
                    event=LogEvent.ZONE_REFRESH_FAILED,
                    message="Zone source fetch failed, keeping previous zones",
                    metadata={"kept_zones": loaded},
                    exc_info=e,
                )
                report = RefreshReport(
                    success=False, loaded=loaded, error=str(e), refreshed_at=now
                )
                self._last_report = report
                return report

            zones: List[Zone] = []
            by_id: Dict[str, Zone] = {}
            skipped: List[ZoneValidation] = []
            repaired: List[str] = []

            for row in rows:
                result = validate_zone(row)
                if result.is_valid and result.zone_id in by_id:
                    result = ZoneValidation(
                        zone_id=result.zone_id,
                        name=result.name,
                        reason="duplicate zone id",
                    )
                if not result.is_valid:
                    skipped.append(result)
                    self._logger.warning(
                        event=LogEvent.ZONE_SKIPPED,
                        message=f"Skipping zone: {result.reason}",
                        metadata={"zone_id": result.zone_id, "reason": result.reason},
                    )
                    continue

                if result.repaired:
                    repaired.append(result.zone_id)
                    self._logger.warning(
                        event=LogEvent.ZONE_REPAIRED,
                        message="Zone ring was not closed, closing it",
                        metadata={"zone_id": result.zone_id},
                    )

                zones.append(result.zone)
                by_id[result.zone_id] = result.zone

            self._snapshot = _Snapshot(zones=tuple(zones), by_id=by_id)

            report = RefreshReport(
                success=True,
                loaded=len(zones),
                skipped=tuple(skipped),
                repaired=tuple(repaired),
                refreshed_at=now,
            )
            self._last_report = report

        self._logger.info(
            event=LogEvent.ZONE_REFRESH_COMPLETED,
            message=f"Loaded {report.loaded} zones",
            metadata={
                "zone_count": report.loaded,
                "skipped": len(report.skipped),
                "repaired": len(report.repaired),
            },
        )
        return report

    def resolve(self, point: Point) -> Optional[Zone]:
        """Zone containing the point (first in source order), or None."""
        return ZoneDetector.find_containing(self._snapshot.zones, point)

    def find_containing(self, point: Point) -> Optional[str]:
        """
        Id of the zone containing the point, or None.

        Linear scan in source order; with overlapping zones the first one
        listed by the source wins.
        """
        zone = self.resolve(point)
        return zone.zone_id if zone is not None else None

    def find_all_containing(self, point: Point) -> List[Zone]:
        return ZoneDetector.find_all_containing(self._snapshot.zones, point)

    def get(self, zone_id: str) -> Optional[Zone]:
        return self._snapshot.by_id.get(zone_id)

    def snapshot(self) -> Tuple[Zone, ...]:
        """Current zones in source order (immutable)."""
        return self._snapshot.zones

    def list_zones(self) -> List[Dict[str, Any]]:
        """Zone summaries for control-plane responses."""
        return [
            {"id": zone.zone_id, "name": zone.name, "vertices": len(zone.boundary) - 1}
            for zone in self._snapshot.zones
        ]

    @property
    def last_refresh(self) -> Optional[RefreshReport]:
        return self._last_report

    def __len__(self) -> int:
        return len(self._snapshot.zones)
