"""SQLite-backed zone source and crossing log.

Both tables live in the same database file. The zone table is the source
the ZoneDirectory refreshes from; the crossing table is the append-only log
of zone transitions.

Connections are shared across worker threads, so every statement runs
under an instance lock.

Usage
-----
```
from zonetrack_processor.storage import SqliteZoneStore, SqliteCrossingLog
zones = SqliteZoneStore("data/zonetrack.db")
zones.upsert_zone("downtown", "Downtown", {"type": "Polygon", "coordinates": [...]})
log = SqliteCrossingLog("data/zonetrack.db")
log.history("taxi-7", limit=20)
```
"""

from __future__ import annotations

import copy
import json
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence

from zonetrack_mqtt.logging import LogEvent, StructuredLogger, create_logger
from zonetrack_mqtt.schemas import CrossingEvent

MAX_PAGE_SIZE = 1000


def _connect(db_path: str | Path) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    return conn


def _check_page(limit: int, offset: int = 0) -> None:
    if not isinstance(limit, int) or isinstance(limit, bool) or not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"limit must be an integer in [1, {MAX_PAGE_SIZE}], got {limit!r}")
    if not isinstance(offset, int) or isinstance(offset, bool) or offset < 0:
        raise ValueError(f"offset must be a non-negative integer, got {offset!r}")


class SqliteZoneStore:
    """Zone definitions, listed in a stable order (position, then id)."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = db_path
        self.conn = _connect(db_path)
        self._lock = threading.Lock()
        self._create_table()

    def _create_table(self) -> None:
        with self._lock:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS zones (
                    id TEXT PRIMARY KEY,
                    name TEXT,
                    boundary TEXT NOT NULL,
                    position INTEGER NOT NULL DEFAULT 0
                )
                """
            )
            self.conn.commit()

    def list_zones(self) -> List[Dict[str, Any]]:
        """Raw rows; boundary is returned as the stored JSON string."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT id, name, boundary FROM zones ORDER BY position, id"
            ).fetchall()
        return [{"id": r["id"], "name": r["name"], "boundary": r["boundary"]} for r in rows]

    def upsert_zone(
        self,
        zone_id: str,
        name: str,
        boundary: Mapping[str, Any] | str,
        position: Optional[int] = None,
    ) -> None:
        """Insert or replace a zone. New zones go last unless a position is given."""
        if not zone_id:
            raise ValueError("zone_id cannot be empty")
        boundary_json = boundary if isinstance(boundary, str) else json.dumps(boundary)

        with self._lock:
            if position is None:
                row = self.conn.execute(
                    "SELECT position FROM zones WHERE id = ?", (zone_id,)
                ).fetchone()
                if row is not None:
                    position = row["position"]
                else:
                    row = self.conn.execute(
                        "SELECT COALESCE(MAX(position) + 1, 0) AS next FROM zones"
                    ).fetchone()
                    position = row["next"]
            self.conn.execute(
                """
                INSERT INTO zones (id, name, boundary, position) VALUES (?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    boundary = excluded.boundary,
                    position = excluded.position
                """,
                (zone_id, name, boundary_json, position),
            )
            self.conn.commit()

    def delete_zone(self, zone_id: str) -> bool:
        with self._lock:
            cur = self.conn.execute("DELETE FROM zones WHERE id = ?", (zone_id,))
            self.conn.commit()
            return cur.rowcount > 0

    def close(self) -> None:
        with self._lock:
            self.conn.close()


class SqliteCrossingLog:
    """Append-only log of crossing events with per-vehicle and global history."""

    def __init__(self, db_path: str | Path, logger: Optional[StructuredLogger] = None) -> None:
        self.db_path = db_path
        self.conn = _connect(db_path)
        self._lock = threading.Lock()
        self._logger = logger or create_logger("crossing_log")
        self._create_table()

    def _create_table(self) -> None:
        with self._lock:
            self.conn.execute(
                """
                CREATE TABLE IF NOT EXISTS zone_crossings (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    vehicle_id TEXT NOT NULL,
                    previous_zone TEXT,
                    current_zone TEXT,
                    event_type TEXT NOT NULL,
                    lat REAL NOT NULL,
                    lng REAL NOT NULL,
                    speed REAL NOT NULL DEFAULT 0,
                    crossed_at TEXT NOT NULL
                )
                """
            )
            self.conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_zone_crossings_vehicle "
                "ON zone_crossings (vehicle_id, crossed_at)"
            )
            self.conn.commit()

    def append(self, event: CrossingEvent) -> bool:
        """Persist one event. Returns False on failure; never raises."""
        try:
            with self._lock:
                self.conn.execute(
                    """
                    INSERT INTO zone_crossings
                        (vehicle_id, previous_zone, current_zone, event_type,
                         lat, lng, speed, crossed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.vehicle_id,
                        event.previous_zone_id,
                        event.current_zone_id,
                        event.event_type.value,
                        event.lat,
                        event.lng,
                        event.speed,
                        event.timestamp.value,
                    ),
                )
                self.conn.commit()
        except sqlite3.Error as e:
            self._logger.error(
                event=LogEvent.CROSSING_RECORD_FAILED,
                message="Failed to record crossing",
                metadata={"vehicle_id": event.vehicle_id, "event_type": event.event_type.value},
                exc_info=e,
            )
            return False

        self._logger.debug(
            event=LogEvent.CROSSING_RECORDED,
            message="Recorded crossing",
            metadata={"vehicle_id": event.vehicle_id, "event_type": event.event_type.value},
        )
        return True

    @staticmethod
    def _rows(rows: Sequence[sqlite3.Row]) -> List[Dict[str, Any]]:
        return [dict(r) for r in rows]

    def history(self, vehicle_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Crossings of one vehicle, newest first."""
        _check_page(limit)
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT * FROM zone_crossings WHERE vehicle_id = ?
                ORDER BY crossed_at DESC, id DESC LIMIT ?
                """,
                (vehicle_id, limit),
            ).fetchall()
        return self._rows(rows)

    def recent(self, limit: int = 100, offset: int = 0) -> List[Dict[str, Any]]:
        """All crossings, newest first, paginated."""
        _check_page(limit, offset)
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT * FROM zone_crossings
                ORDER BY crossed_at DESC, id DESC LIMIT ? OFFSET ?
                """,
                (limit, offset),
            ).fetchall()
        return self._rows(rows)

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM zone_crossings").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self.conn.close()


class YamlZoneSource:
    """Zones given inline in the tracker YAML (`zones:` list)."""

    def __init__(self, zones: Sequence[Mapping[str, Any]]) -> None:
        self._zones = list(zones)

    def list_zones(self) -> List[Dict[str, Any]]:
        return [dict(copy.deepcopy(row)) if isinstance(row, Mapping) else row for row in self._zones]
