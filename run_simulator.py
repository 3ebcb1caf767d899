#!/usr/bin/env python3
"""
Vehicle Simulator
=================

Publishes synthetic position updates for a fleet of vehicles on the
tracker's ingest topic, so zone crossings can be exercised without real
GPS feeds.

Each vehicle walks toward the centroid of a randomly chosen target zone,
with some noise on every step. When it gets close to the target (or has
spent too many steps near it) it picks another zone. Positions stay inside
the bounding box of all configured zones, padded by a margin, so vehicles
regularly leave every zone and come back.

Usage:
    python run_simulator.py --config config/tracker_config.yaml
    python run_simulator.py --config config/tracker_config.yaml --vehicles 20 --interval 1
"""

import argparse
import json
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
import paho.mqtt.client as mqtt

from zonetrack_mqtt.schemas import PositionUpdate
from zonetrack_processor.config import TrackerConfig
from zonetrack_processor.registry import ZoneDirectory
from zonetrack_processor.storage import SqliteZoneStore, YamlZoneSource
from zonetrack_zone import Zone

logger = logging.getLogger(__name__)

STEP_SIZE = 0.002          # degrees per update (~200 m)
RANDOMNESS = 0.4           # share of each step that is noise
ARRIVAL_DISTANCE = 0.005   # degrees; closer than this counts as arrived
MAX_STEPS_NEAR_TARGET = 10
BOUNDS_MARGIN = 0.01       # degrees of padding around the zone bounding box


@dataclass
class SimulatedVehicle:
    vehicle_id: str
    position: np.ndarray   # (lng, lat)
    target: int            # index into the zone list
    steps_near_target: int = 0


class FleetSimulator:
    """
    Random-walk fleet moving between zone centroids.

    Args:
        zones: Valid zones to steer toward (at least one)
        vehicles: Fleet size
        seed: RNG seed for reproducible runs
    """

    def __init__(self, zones: List[Zone], vehicles: int = 5, seed: Optional[int] = None):
        if not zones:
            raise ValueError("simulator needs at least one zone")
        if vehicles < 1:
            raise ValueError(f"vehicles must be >= 1, got {vehicles}")

        self.zones = list(zones)
        self.rng = np.random.default_rng(seed)
        self.centroids = np.array([zone.boundary.centroid for zone in self.zones])

        bounds = np.array([zone.boundary.bounds for zone in self.zones])
        self.lower = bounds[:, :2].min(axis=0) - BOUNDS_MARGIN
        self.upper = bounds[:, 2:].max(axis=0) + BOUNDS_MARGIN

        self.fleet = [
            SimulatedVehicle(
                vehicle_id=f"vehicle-{i + 1:03d}",
                position=self.rng.uniform(self.lower, self.upper),
                target=int(self.rng.integers(len(self.zones))),
            )
            for i in range(vehicles)
        ]

    def _retarget(self, vehicle: SimulatedVehicle) -> None:
        if len(self.zones) > 1:
            choices = [i for i in range(len(self.zones)) if i != vehicle.target]
            vehicle.target = int(self.rng.choice(choices))
        vehicle.steps_near_target = 0
        logger.debug(f"{vehicle.vehicle_id}: new target {self.zones[vehicle.target].name}")

    def step(self, vehicle: SimulatedVehicle) -> PositionUpdate:
        """Advance one vehicle and return its new position update."""
        delta = self.centroids[vehicle.target] - vehicle.position
        distance = float(np.hypot(*delta))

        if distance < ARRIVAL_DISTANCE or vehicle.steps_near_target > MAX_STEPS_NEAR_TARGET:
            self._retarget(vehicle)
            delta = self.centroids[vehicle.target] - vehicle.position
            distance = float(np.hypot(*delta))

        if distance < 4 * ARRIVAL_DISTANCE:
            vehicle.steps_near_target += 1

        heading = delta / distance if distance > 0 else np.zeros(2)
        noise = self.rng.uniform(-0.5, 0.5, size=2)
        move = heading * STEP_SIZE * (1 - RANDOMNESS) + noise * STEP_SIZE * RANDOMNESS
        vehicle.position = np.clip(vehicle.position + move, self.lower, self.upper)

        # Rough km/h from degrees moved per step
        speed = float(np.hypot(*move)) * 111.0 * 3600.0 / 3.0

        return PositionUpdate(
            vehicle_id=vehicle.vehicle_id,
            lat=float(vehicle.position[1]),
            lng=float(vehicle.position[0]),
            speed=round(speed, 1),
        )

    def tick(self) -> List[PositionUpdate]:
        return [self.step(vehicle) for vehicle in self.fleet]


def load_zones(config: TrackerConfig) -> List[Zone]:
    """Load zones the same way the tracker does."""
    if config.zones is not None:
        source = YamlZoneSource(config.zones)
    else:
        source = SqliteZoneStore(config.database_path)

    directory = ZoneDirectory(source)
    report = directory.refresh()
    if not report.success:
        raise RuntimeError(f"Failed to load zones: {report.error}")
    return list(directory.snapshot())


def parse_args():
    parser = argparse.ArgumentParser(
        description="Publish simulated vehicle positions to the tracker ingest topic"
    )
    parser.add_argument('--config', type=Path, default=Path('config/tracker_config.yaml'),
                        help='Tracker configuration YAML (zones, broker, topics)')
    parser.add_argument('--vehicles', type=int, default=5, help='Fleet size (default: 5)')
    parser.add_argument('--interval', type=float, default=3.0,
                        help='Seconds between updates (default: 3)')
    parser.add_argument('--seed', type=int, help='RNG seed')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    return parser.parse_args()


def main():
    args = parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    if not args.config.exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    config = TrackerConfig.from_yaml(args.config)
    zones = load_zones(config)
    simulator = FleetSimulator(zones, vehicles=args.vehicles, seed=args.seed)
    topic = config.topics["ingest"]
    mqtt_config = config.mqtt_config

    client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=f"simulator_{config.service_id}")
    if mqtt_config.username and mqtt_config.password:
        client.username_pw_set(mqtt_config.username, mqtt_config.password)

    try:
        client.connect(mqtt_config.broker, mqtt_config.port, keepalive=60)
    except OSError as e:
        logger.error(f"Unable to connect to MQTT broker at {mqtt_config.broker}:{mqtt_config.port}: {e}")
        sys.exit(1)
    client.loop_start()

    stop_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signal.Signals(signum).name}, stopping")
        stop_event.set()

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    logger.info(f"Simulating {args.vehicles} vehicles over {len(zones)} zones -> {topic}")

    sent = 0
    while not stop_event.is_set():
        for update in simulator.tick():
            client.publish(topic, json.dumps(update.to_dict()), qos=mqtt_config.qos)
            sent += 1
        logger.debug(f"Published {sent} updates")
        stop_event.wait(args.interval)

    client.disconnect()
    client.loop_stop()
    logger.info(f"Simulator stopped after {sent} updates")


if __name__ == '__main__':
    main()
