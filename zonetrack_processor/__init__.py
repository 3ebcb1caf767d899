"""
zonetrack_processor - Zone crossing detection service

This package provides the tracker core: it resolves which zone each vehicle
position falls in, remembers each vehicle's last zone, and emits ENTER / EXIT
/ CROSSING events when that changes.

Architecture:
- ZoneTrackingService: Main orchestrator
- ZoneDirectory: Atomically refreshed zone snapshot
- VehicleStateStore: Last known zone per vehicle (staleness window)
- CrossingDetector: Transition rules, one update at a time
- PublishDispatcher: Non-blocking hand-off to MQTT publishers
- UpdateWorkerPool: Per-vehicle ordered, cross-vehicle parallel processing
- ZoneRefreshTask: Periodic / on-demand zone refresh
- StateSweepTask: Periodic purge of expired vehicle states
- TrackerConfig: Configuration management

Threading Model:
- Ingest Thread (paho-mqtt internal, submits updates)
- UpdateWorker threads (our threads, run detection)
- MQTT Publisher Thread (our thread for publishing)
- Zone Refresh Thread and State Sweep Thread (our threads)
- Control Plane Thread (paho-mqtt internal for commands)
"""

from zonetrack_processor.config import MQTTConfig, TrackerConfig
from zonetrack_processor.registry import RefreshReport, ZoneDirectory
from zonetrack_processor.state import (
    InMemoryStateCache,
    VehicleState,
    VehicleStateStore,
)
from zonetrack_processor.dispatch import PublishDispatcher, Topic
from zonetrack_processor.detector import CrossingDetector, DetectionResult
from zonetrack_processor.workers import UpdateWorkerPool
from zonetrack_processor.refresh import StateSweepTask, ZoneRefreshTask
from zonetrack_processor.storage import SqliteCrossingLog, SqliteZoneStore, YamlZoneSource
from zonetrack_processor.service import ZoneTrackingService

__all__ = [
    "MQTTConfig",
    "TrackerConfig",
    "RefreshReport",
    "ZoneDirectory",
    "InMemoryStateCache",
    "VehicleState",
    "VehicleStateStore",
    "PublishDispatcher",
    "Topic",
    "CrossingDetector",
    "DetectionResult",
    "UpdateWorkerPool",
    "ZoneRefreshTask",
    "StateSweepTask",
    "SqliteCrossingLog",
    "SqliteZoneStore",
    "YamlZoneSource",
    "ZoneTrackingService",
]
