"""
Crossing Detector - one position update in, at most one crossing event out.

For each update:
1. Resolve the containing zone from the directory snapshot
2. Read the vehicle's prior state (absent or stale = first sighting)
3. Classify: ENTER / EXIT / CROSSING / no change
4. Store the new state (always, whatever happened before)
5. On a transition: publish the event and append it to the crossing log;
   a failed append is logged and does not undo the state write
6. Publish the raw position (always)

Thread Safety:
- Stateless apart from its collaborators, which are all thread-safe
- Per-vehicle ordering is the caller's job (UpdateWorkerPool routes a
  vehicle's updates to a single worker)
"""

import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Protocol

from zonetrack_zone import VehiclePhase, ZoneCounter, classify_transition, phase_of
from zonetrack_mqtt.logging import LogEvent, StructuredLogger, create_logger
from zonetrack_mqtt.schemas import CrossingEvent, PositionMessage, PositionUpdate, Timestamp
from zonetrack_processor.dispatch import EventSink, Topic
from zonetrack_processor.registry import ZoneDirectory
from zonetrack_processor.state import VehicleState, VehicleStateStore

SCHEMA_VERSION = "1.0"


class CrossingLogSink(Protocol):
    def append(self, event: CrossingEvent) -> bool:
        ...


@dataclass(frozen=True)
class DetectionResult:
    """
    What one update did.

    Attributes:
        vehicle_id: Vehicle the update belongs to
        zone_id: Zone now containing the vehicle (None = outside)
        previous_zone_id: Zone from prior state (None = outside or unseen)
        first_sighting: True when there was no fresh prior state
        event: Crossing event, when the zone changed
        recorded: Whether the crossing log accepted the event (None if no event)
    """

    vehicle_id: str
    zone_id: Optional[str]
    previous_zone_id: Optional[str]
    first_sighting: bool
    event: Optional[CrossingEvent] = None
    recorded: Optional[bool] = None

    @property
    def changed(self) -> bool:
        return self.event is not None

    @property
    def previous_phase(self) -> VehiclePhase:
        return phase_of(not self.first_sighting, self.previous_zone_id)

    @property
    def phase(self) -> VehiclePhase:
        return phase_of(True, self.zone_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "vehicle_id": self.vehicle_id,
            "zone_id": self.zone_id,
            "previous_zone_id": self.previous_zone_id,
            "previous_phase": self.previous_phase.value,
            "phase": self.phase.value,
            "first_sighting": self.first_sighting,
            "event": self.event.to_dict() if self.event else None,
            "recorded": self.recorded,
        }


class CrossingDetector:
    """
    Applies the zone transition rules to position updates.

    Usage:
        detector = CrossingDetector(directory, state_store, dispatcher, crossing_log)
        result = detector.process(PositionUpdate.from_dict(payload))
        if result.changed:
            print(result.event.describe())
    """

    def __init__(
        self,
        directory: ZoneDirectory,
        state_store: VehicleStateStore,
        publisher: EventSink,
        crossing_log: CrossingLogSink,
        counter: Optional[ZoneCounter] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[StructuredLogger] = None,
    ):
        self.directory = directory
        self.state_store = state_store
        self.publisher = publisher
        self.crossing_log = crossing_log
        self.counter = counter
        self._clock = clock
        self._logger = logger or create_logger("detector")

    def process(self, update: PositionUpdate) -> DetectionResult:
        """Run one update through the transition rules."""
        now = self._clock()
        timestamp = Timestamp.from_epoch(now)

        zone = self.directory.resolve(update.point)
        zone_id = zone.zone_id if zone is not None else None
        zone_name = zone.name if zone is not None else None

        prior = self.state_store.get(update.vehicle_id)
        previous_zone_id = prior.zone_id if prior is not None else None

        event_type = None
        if prior is not None:
            event_type = classify_transition(previous_zone_id, zone_id)
        else:
            self._logger.debug(
                event=LogEvent.CROSSING_FIRST_SIGHTING,
                message="No prior state, seeding vehicle state",
                metadata={"vehicle_id": update.vehicle_id, "zone_id": zone_id},
            )

        self.state_store.put(
            update.vehicle_id,
            VehicleState(
                zone_id=zone_id,
                zone_name=zone_name,
                lat=update.lat,
                lng=update.lng,
                speed=update.speed,
                updated_at=now,
            ),
        )

        event = None
        recorded = None
        if event_type is not None:
            event = CrossingEvent(
                vehicle_id=update.vehicle_id,
                previous_zone_id=previous_zone_id,
                current_zone_id=zone_id,
                event_type=event_type,
                lat=update.lat,
                lng=update.lng,
                speed=update.speed,
                timestamp=timestamp,
                previous_zone_name=prior.zone_name,
                current_zone_name=zone_name,
                schema_version=SCHEMA_VERSION,
            )
            self._logger.info(
                event=LogEvent.CROSSING_DETECTED,
                message=event.describe(),
                metadata={
                    "vehicle_id": update.vehicle_id,
                    "event_type": event_type.value,
                    "previous_zone_id": previous_zone_id,
                    "current_zone_id": zone_id,
                },
            )
            self._publish(Topic.CROSSING, event)
            recorded = self._record(event)
            if self.counter is not None:
                self.counter.record(event_type, previous_zone_id, zone_id)

        self._publish(
            Topic.POSITION,
            PositionMessage(
                schema_version=SCHEMA_VERSION,
                timestamp=timestamp,
                vehicle_id=update.vehicle_id,
                lat=update.lat,
                lng=update.lng,
                speed=update.speed,
                zone_id=zone_id,
                zone_name=zone_name,
            ),
        )

        self._logger.debug(
            event=LogEvent.POSITION_PROCESSED,
            message="Processed position update",
            metadata={"vehicle_id": update.vehicle_id, "zone_id": zone_id},
        )

        return DetectionResult(
            vehicle_id=update.vehicle_id,
            zone_id=zone_id,
            previous_zone_id=previous_zone_id,
            first_sighting=prior is None,
            event=event,
            recorded=recorded,
        )

    def _publish(self, topic: Topic, message: Any) -> bool:
        try:
            return bool(self.publisher.publish(topic, message))
        except Exception as e:
            self._logger.error(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message=f"Failed to hand {topic.value} message to the publisher",
                metadata={"vehicle_id": message.vehicle_id},
                exc_info=e,
            )
            return False

    def _record(self, event: CrossingEvent) -> bool:
        try:
            return bool(self.crossing_log.append(event))
        except Exception as e:
            self._logger.error(
                event=LogEvent.CROSSING_RECORD_FAILED,
                message="Failed to record crossing",
                metadata={"vehicle_id": event.vehicle_id, "event_type": event.event_type.value},
                exc_info=e,
            )
            return False
