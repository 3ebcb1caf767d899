"""
Configuration schema for the ZoneTracking service.

This module defines the configuration structure for the tracker: zone
refresh cadence, vehicle state staleness window, worker pool sizing,
persistence and MQTT settings.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import yaml

MAX_REFRESH_INTERVAL_S = 3600.0


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0  # Data plane QoS for raw positions

    ingest_topic: str = "zonetrack/{service_id}/ingest"
    position_topic: str = "zonetrack/{service_id}/positions"
    crossing_topic: str = "zonetrack/{service_id}/crossings"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("MQTT broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        for name in ("ingest_topic", "position_topic", "crossing_topic"):
            if not getattr(self, name):
                raise ValueError(f"{name} cannot be empty")

    def topics_for(self, service_id: str) -> Dict[str, str]:
        """Resolve {service_id} placeholders."""
        return {
            "ingest": self.ingest_topic.format(service_id=service_id),
            "position": self.position_topic.format(service_id=service_id),
            "crossing": self.crossing_topic.format(service_id=service_id),
        }


@dataclass(frozen=True)
class TrackerConfig:
    """
    Main configuration for the ZoneTracking service.

    Loaded from YAML and validated at startup. Immutable after
    construction (frozen dataclass).

    When ``zones`` is given inline, it is the zone source and
    ``database_path`` only backs the crossing log.
    """

    # Service identification
    service_id: str

    # Zone directory
    zone_refresh_interval_s: float = MAX_REFRESH_INTERVAL_S
    zones: Optional[List[Dict[str, Any]]] = None

    # Vehicle state
    state_ttl_s: float = 300.0

    # Concurrency
    workers: int = 4
    worker_queue_size: int = 1000
    publish_queue_size: int = 1000

    # Persistence
    database_path: Path = Path("./data/zonetrack.db")

    # MQTT configuration
    mqtt_config: MQTTConfig = field(default_factory=MQTTConfig)

    def __post_init__(self):
        """Validate tracker configuration."""
        if not self.service_id:
            raise ValueError("service_id cannot be empty")

        if not 0 < self.zone_refresh_interval_s <= MAX_REFRESH_INTERVAL_S:
            raise ValueError(
                f"zone_refresh_interval_s must be in (0, {MAX_REFRESH_INTERVAL_S:g}], "
                f"got {self.zone_refresh_interval_s}"
            )

        if self.state_ttl_s <= 0:
            raise ValueError(
                f"state_ttl_s must be > 0, got {self.state_ttl_s}"
            )

        if not 1 <= self.workers <= 64:
            raise ValueError(
                f"workers must be in [1, 64], got {self.workers}"
            )

        if self.worker_queue_size < 1:
            raise ValueError(
                f"worker_queue_size must be >= 1, got {self.worker_queue_size}"
            )

        if self.publish_queue_size < 1:
            raise ValueError(
                f"publish_queue_size must be >= 1, got {self.publish_queue_size}"
            )

        if self.zones is not None and not isinstance(self.zones, list):
            raise ValueError("zones must be a list of {id, name, boundary} mappings")

    @property
    def topics(self) -> Dict[str, str]:
        """MQTT topics with {service_id} resolved."""
        return self.mqtt_config.topics_for(self.service_id)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TrackerConfig":
        """Build from an already-parsed mapping (see from_yaml)."""
        if not isinstance(data, dict):
            raise ValueError("Tracker configuration must be a mapping")

        mqtt_config = MQTTConfig(**(data.get("mqtt_config") or {}))

        kwargs: Dict[str, Any] = {
            "service_id": data.get("service_id", ""),
            "zones": data.get("zones"),
            "mqtt_config": mqtt_config,
        }
        for key in (
            "zone_refresh_interval_s",
            "state_ttl_s",
            "workers",
            "worker_queue_size",
            "publish_queue_size",
        ):
            if key in data:
                kwargs[key] = data[key]
        if "database_path" in data:
            kwargs["database_path"] = Path(data["database_path"])

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "TrackerConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            service_id: "tracker_01"
            zone_refresh_interval_s: 3600
            state_ttl_s: 300
            workers: 4
            database_path: "./data/zonetrack.db"

            zones:                       # optional; else read from database
              - id: "downtown"
                name: "Downtown"
                boundary:
                  type: Polygon
                  coordinates: [[[-74.02, 40.70], [-73.97, 40.70],
                                 [-73.97, 40.75], [-74.02, 40.75],
                                 [-74.02, 40.70]]]

            mqtt_config:
              broker: "localhost"
              port: 1883
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data)
