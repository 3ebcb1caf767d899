"""
Zone Tracking Service - wires the tracker together and runs it.

This module provides the ZoneTrackingService class which owns the zone
directory, vehicle state store, crossing detector, worker pool, publish
dispatcher and zone refresh task, and exposes them over the control plane.

Threading Model:
- Ingest thread (paho-mqtt internal, PositionIngestSubscriber) -> submit()
- UpdateWorker-N threads (ours) run CrossingDetector.process()
- MQTTPublisherThread (ours) drains the publish queue
- ZoneRefreshThread (ours) refreshes the zone directory
- StateSweepThread (ours) purges expired vehicle states
- Control Plane thread (paho-mqtt internal, command handlers)
"""

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from zonetrack_control import optional_int, require_arg
from zonetrack_mqtt.schemas import PositionUpdate
from zonetrack_zone import ZoneCounter
from zonetrack_processor.config import TrackerConfig
from zonetrack_processor.detector import CrossingDetector, DetectionResult
from zonetrack_processor.dispatch import PublishDispatcher
from zonetrack_processor.refresh import StateSweepTask, ZoneRefreshTask
from zonetrack_processor.registry import ZoneDirectory, ZoneSource
from zonetrack_processor.state import InMemoryStateCache, StateCache, VehicleStateStore
from zonetrack_processor.workers import UpdateWorkerPool

logger = logging.getLogger(__name__)


class ZoneTrackingService:
    """
    Main zone tracking service.

    Usage:
        config = TrackerConfig.from_yaml("config/tracker_config.yaml")
        service = ZoneTrackingService(
            config=config,
            control_plane=control_plane,
            position_publisher=position_publisher,
            crossing_publisher=crossing_publisher,
            zone_source=SqliteZoneStore(config.database_path),
            crossing_log=SqliteCrossingLog(config.database_path),
        )
        service.attach_ingest(ingest_subscriber)
        service.setup()
        service.start()
        service.wait()   # until stop()
    """

    def __init__(
        self,
        config: TrackerConfig,
        control_plane,  # MQTTControlPlane
        position_publisher,  # PositionPublisher
        crossing_publisher,  # CrossingEventPublisher
        zone_source: ZoneSource,
        crossing_log,  # SqliteCrossingLog
        state_cache: Optional[StateCache] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.config = config
        self.control_plane = control_plane
        self.position_publisher = position_publisher
        self.crossing_publisher = crossing_publisher
        self.crossing_log = crossing_log
        self.ingest_subscriber = None

        # Components
        self.directory = ZoneDirectory(zone_source, clock=clock)
        self.state_store = VehicleStateStore(
            state_cache if state_cache is not None else InMemoryStateCache(),
            ttl_s=config.state_ttl_s,
            clock=clock,
        )
        self.counter = ZoneCounter()
        self.dispatcher = PublishDispatcher(
            position_publisher,
            crossing_publisher,
            queue_size=config.publish_queue_size,
        )
        self.detector = CrossingDetector(
            directory=self.directory,
            state_store=self.state_store,
            publisher=self.dispatcher,
            crossing_log=crossing_log,
            counter=self.counter,
            clock=clock,
        )
        self.worker_pool = UpdateWorkerPool(
            handler=self.detector.process,
            workers=config.workers,
            queue_size=config.worker_queue_size,
        )
        self.refresh_task = ZoneRefreshTask(
            self.directory, interval_s=config.zone_refresh_interval_s
        )
        self.sweep_task = StateSweepTask(self.state_store, interval_s=config.state_ttl_s)

        # Lifecycle state
        self._running = False
        self._stop_requested = threading.Event()

        logger.info(f"ZoneTrackingService initialized for service_id={config.service_id}")

    def attach_ingest(self, subscriber) -> None:
        """Ingest subscriber feeding submit(); connected in start()."""
        self.ingest_subscriber = subscriber

    def setup(self) -> None:
        """
        Load zones and register control handlers.

        Must be called before start(). A failed initial load leaves the
        directory empty; the periodic refresh retries.
        """
        report = self.refresh_task.refresh_now()
        if not report.success:
            logger.warning(f"Initial zone load failed: {report.error}")
        self._setup_control_handlers()
        logger.info("Service setup complete")

    def _setup_control_handlers(self) -> None:
        registry = self.control_plane.command_registry

        registry.register("refresh_zones", self._handle_refresh_zones, "Reload zones from the zone source now")
        registry.register("list_zones", self._handle_list_zones, "List loaded zones")
        registry.register("vehicle_state", self._handle_vehicle_state, "Show a vehicle's last known zone")
        registry.register("latest_positions", self._handle_latest_positions, "Last known state of every live vehicle")
        registry.register("zone_stats", self._handle_zone_stats, "Per-zone transition counts")
        registry.register("status", self._handle_status, "Service status and queue statistics")
        registry.register("history", self._handle_history, "Crossing history (per vehicle or all)")

        logger.info("Control handlers registered")

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def start(self) -> None:
        """
        Start the service (non-blocking).

        Lifecycle:
        1. Connect control plane
        2. Connect publishers
        3. Start publisher thread, workers and refresh timer
        4. Connect the ingest subscriber (updates start flowing)
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting zone tracking service")

        if not self.control_plane.connect(timeout=5.0):
            raise RuntimeError("Failed to connect to MQTT broker (control plane)")

        self.position_publisher.connect()
        self.crossing_publisher.connect()

        self.dispatcher.start()
        self.worker_pool.start()
        self.refresh_task.start()
        self.sweep_task.start()

        if self.ingest_subscriber is not None:
            if not self.ingest_subscriber.connect():
                logger.error("Ingest subscriber failed to connect; no updates will be received")
        else:
            logger.warning("No ingest subscriber attached")

        self._stop_requested.clear()
        self._running = True
        self.control_plane.publish_status("running", {"zones": len(self.directory)})
        logger.info("Zone tracking service started")

    def wait(self) -> None:
        """Block until stop() is called."""
        if not self._running:
            logger.warning("Service not running")
            return

        try:
            self._stop_requested.wait()
        except KeyboardInterrupt:
            logger.info("Received KeyboardInterrupt, stopping...")
            self.stop()

    def stop(self) -> None:
        """
        Stop the service gracefully.

        Ingest stops first, then queued updates and messages are drained.
        """
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping zone tracking service")

        if self.ingest_subscriber is not None:
            self.ingest_subscriber.stop()

        self.refresh_task.stop()
        self.sweep_task.stop()
        self.worker_pool.stop()
        self.dispatcher.stop()

        self.position_publisher.disconnect()
        self.crossing_publisher.disconnect()

        self.control_plane.publish_status("stopped")
        self.control_plane.disconnect()

        self._running = False
        self._stop_requested.set()
        logger.info("Zone tracking service stopped")

    def is_running(self) -> bool:
        return self._running

    # ─────────────────────────────────────────────────────────────────────
    # Data path
    # ─────────────────────────────────────────────────────────────────────

    def submit(self, update: PositionUpdate) -> bool:
        """Queue an update for its vehicle's worker (ingest thread)."""
        return self.worker_pool.submit(update)

    def process(self, update: PositionUpdate) -> DetectionResult:
        """Process an update synchronously on the caller's thread."""
        return self.detector.process(update)

    # ─────────────────────────────────────────────────────────────────────
    # Command Handlers (called by Control Plane Thread)
    # ─────────────────────────────────────────────────────────────────────

    def _handle_refresh_zones(self, command: Dict) -> Dict[str, Any]:
        report = self.refresh_task.refresh_now()
        data = report.to_dict()
        self.control_plane.publish_status("zones_refreshed", data)
        logger.info(f"Zones refreshed on demand: loaded={report.loaded} success={report.success}")
        return data

    def _handle_list_zones(self, command: Dict) -> Dict[str, Any]:
        data = {"zones": self.directory.list_zones()}
        self.control_plane.publish_status("zones_list", data)
        return data

    def _handle_vehicle_state(self, command: Dict) -> Dict[str, Any]:
        vehicle_id = str(require_arg(command, "vehicle_id", (str, int)))
        state = self.state_store.get(vehicle_id)
        data = {
            "vehicle_id": vehicle_id,
            "state": state.to_dict() if state is not None else None,
        }
        self.control_plane.publish_status("vehicle_state", data)
        return data

    def _handle_latest_positions(self, command: Dict) -> Dict[str, Any]:
        states = self.state_store.latest()
        data = {
            "count": len(states),
            "vehicles": {vid: s.to_dict() for vid, s in states.items()},
        }
        self.control_plane.publish_status("latest_positions", data)
        return data

    def _handle_zone_stats(self, command: Dict) -> Dict[str, Any]:
        zone_id = command.get("zone_id")
        if zone_id:
            stats = {zone_id: self.counter.get_stats(zone_id).to_dict()}
        else:
            stats = {zid: s.to_dict() for zid, s in self.counter.all_stats().items()}
        data = {"zones": stats}
        self.control_plane.publish_status("zone_stats", data)
        return data

    def _handle_status(self, command: Dict) -> Dict[str, Any]:
        last = self.directory.last_refresh
        data = {
            "service_id": self.config.service_id,
            "running": self._running,
            "zones": len(self.directory),
            "vehicles": len(self.state_store.vehicle_ids()),
            "last_refresh": last.to_dict() if last is not None else None,
            "workers": self.worker_pool.get_stats(),
            "dispatcher": self.dispatcher.get_stats(),
            "publishers": {
                "position": self.position_publisher.get_stats(),
                "crossing": self.crossing_publisher.get_stats(),
            },
        }
        self.control_plane.publish_status("status", data)
        return data

    def _handle_history(self, command: Dict) -> Dict[str, Any]:
        vehicle_id = command.get("vehicle_id")
        if vehicle_id:
            limit = optional_int(command, "limit", 50)
            rows = self.crossing_log.history(str(vehicle_id), limit=limit)
        else:
            limit = optional_int(command, "limit", 100)
            offset = optional_int(command, "offset", 0)
            rows = self.crossing_log.recent(limit=limit, offset=offset)
        data = {"vehicle_id": vehicle_id, "crossings": rows}
        self.control_plane.publish_status("history", data)
        return data

