#!/usr/bin/env python3
"""
Zone Tracker Service - Entry Point
==================================

This script starts the Zonetrack tracker, which:
- Consumes vehicle position updates from the MQTT ingest topic
- Resolves the zone containing each position
- Detects ENTER / EXIT / CROSSING transitions per vehicle
- Publishes raw positions and crossing events to MQTT
- Records crossings in SQLite
- Responds to control commands via the MQTT control plane

Usage:
    python run_tracker.py --config config/tracker_config.yaml

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create control plane, publishers, ingest subscriber, storage
    4. Create ZoneTrackingService and load zones
    5. Start service (non-blocking)
    6. Wait for stop signal (Ctrl+C or SIGTERM)
    7. Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/tracker.log (INFO level)
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from zonetrack_processor import ZoneTrackingService
from zonetrack_processor.config import TrackerConfig
from zonetrack_processor.storage import SqliteCrossingLog, SqliteZoneStore, YamlZoneSource
from zonetrack_control import MQTTControlPlane
from zonetrack_mqtt import (
    CrossingEventPublisher,
    PositionIngestSubscriber,
    PositionPublisher,
    create_logger,
)


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None, level: int = logging.INFO) -> logging.Logger:
    """
    Setup logging for the tracker service.

    Args:
        log_file: Optional path to log file (default: logs/tracker.log)
        level: Root log level
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class TrackerApp:
    """
    Application wrapper for ZoneTrackingService.

    Handles configuration loading, component wiring, signal handling and
    graceful shutdown.
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None, verbose: bool = False):
        self.config_path = config_path
        self.log_file = log_file
        self.verbose = verbose
        self.logger = setup_logging(log_file, logging.DEBUG if verbose else logging.INFO)

        # Components (initialized in setup())
        self.config: Optional[TrackerConfig] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.crossing_log: Optional[SqliteCrossingLog] = None
        self.service: Optional[ZoneTrackingService] = None

        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Create control plane and publishers
        3. Open zone source and crossing log
        4. Create ZoneTrackingService, attach ingest, load zones
        """
        self.logger.info("=" * 80)
        self.logger.info("Zonetrack Tracker - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"Loading configuration: {self.config_path}")
        self.config = TrackerConfig.from_yaml(self.config_path)
        self.logger.info(f"Configuration loaded (service_id={self.config.service_id})")

        mqtt = self.config.mqtt_config
        topics = self.config.topics
        service_id = self.config.service_id
        level = logging.DEBUG if self.verbose else logging.INFO
        mqtt_logger = create_logger(component="mqtt", level=level)

        self.control_plane = MQTTControlPlane.for_service(
            service_id=service_id,
            broker_host=mqtt.broker,
            broker_port=mqtt.port,
            username=mqtt.username,
            password=mqtt.password,
        )

        position_publisher = PositionPublisher(
            broker_host=mqtt.broker,
            broker_port=mqtt.port,
            topic=topics["position"],
            logger=mqtt_logger,
            client_id=f"publisher_positions_{service_id}",
            username=mqtt.username,
            password=mqtt.password,
            qos=mqtt.qos,
        )
        crossing_publisher = CrossingEventPublisher(
            broker_host=mqtt.broker,
            broker_port=mqtt.port,
            topic=topics["crossing"],
            logger=mqtt_logger,
            client_id=f"publisher_crossings_{service_id}",
            username=mqtt.username,
            password=mqtt.password,
        )
        self.logger.info(f"  - Ingest topic: {topics['ingest']}")
        self.logger.info(f"  - Position topic: {topics['position']}")
        self.logger.info(f"  - Crossing topic: {topics['crossing']}")

        if self.config.zones is not None:
            zone_source = YamlZoneSource(self.config.zones)
            self.logger.info(f"Zone source: inline YAML ({len(self.config.zones)} rows)")
        else:
            zone_source = SqliteZoneStore(self.config.database_path)
            self.logger.info(f"Zone source: {self.config.database_path}")
        self.crossing_log = SqliteCrossingLog(self.config.database_path)

        self.service = ZoneTrackingService(
            config=self.config,
            control_plane=self.control_plane,
            position_publisher=position_publisher,
            crossing_publisher=crossing_publisher,
            zone_source=zone_source,
            crossing_log=self.crossing_log,
        )
        self.service.attach_ingest(PositionIngestSubscriber(
            broker_host=mqtt.broker,
            broker_port=mqtt.port,
            ingest_topic=topics["ingest"],
            on_update=self.service.submit,
            logger=create_logger(component="ingest", level=level),
            client_id=f"ingest_{service_id}",
            username=mqtt.username,
            password=mqtt.password,
            qos=mqtt.qos,
        ))

        self.service.setup()
        self.logger.info(f"Loaded {len(self.service.directory)} zones")
        self.logger.info("=" * 80)

    def run(self):
        """Run the tracker; blocks until shutdown is requested."""
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.service.start()

            self.logger.info("Service started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            self.service.wait()

        except KeyboardInterrupt:
            self.logger.info("KeyboardInterrupt received")
            self.shutdown()

        except Exception as e:
            self.logger.error(f"Service error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        """Stop the service and close storage."""
        if self._shutdown_requested:
            self.logger.warning("Shutdown already in progress")
            return

        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("Shutting down tracker service")
        self.logger.info("=" * 80)

        if self.service and self.service.is_running():
            try:
                self.service.stop()
                self.logger.info("Service stopped")
            except Exception as e:
                self.logger.error(f"Error stopping service: {e}")

        if self.crossing_log:
            self.crossing_log.close()

        self.logger.info("Shutdown complete")

    def _signal_handler(self, signum, frame):
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received signal {signal_name} ({signum})")
        self.shutdown()
        sys.exit(0)


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    parser = argparse.ArgumentParser(
        description="Zonetrack Tracker - vehicle zone crossing detection over MQTT",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  python run_tracker.py --config config/tracker_config.yaml

  # Start without file logging (console only)
  python run_tracker.py --config config/tracker_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        default=Path('config/tracker_config.yaml'),
        help='Path to tracker configuration YAML file'
    )
    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/tracker.log'),
        help='Path to log file (default: logs/tracker.log)'
    )
    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Debug logging (per-message events)'
    )

    return parser.parse_args()


def main():
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = TrackerApp(config_path=args.config, log_file=log_file, verbose=args.verbose)

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
