"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Design:
- Enum-based (prevents typos, enables autocomplete)
- Hierarchical naming (namespace.category.action)
- Searchable in log aggregators (Elasticsearch, CloudWatch Insights)

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, position, crossing, zone, state, error
    category: publish, refresh, detected, write
    action: success, failed, completed

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.vehicle_id
    | filter event = "crossing.detected"
    | stats count() by metadata.event_type
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: MQTT broker interactions
    - position.*: Position update processing
    - crossing.*: Zone transition detection and recording
    - zone.*: Zone directory maintenance
    - state.*: Vehicle state store
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    MQTT_PUBLISH_DROPPED = "mqtt.publish.dropped"
    """Message dropped before reaching the broker (queue full)."""

    # ========== Position Events ==========
    POSITION_RECEIVED = "position.received"
    """Position update received from the ingest topic."""

    POSITION_REJECTED = "position.rejected"
    """Position update failed input validation."""

    POSITION_DROPPED = "position.dropped"
    """Position update dropped (worker queue full)."""

    POSITION_PROCESSED = "position.processed"
    """Position update processed by the detector."""

    POSITION_SERIALIZED = "position.serialized"
    """Position message serialized to JSON."""

    # ========== Crossing Events ==========
    CROSSING_DETECTED = "crossing.detected"
    """Zone transition detected (ENTER / EXIT / CROSSING)."""

    CROSSING_FIRST_SIGHTING = "crossing.first_sighting"
    """Vehicle seen with no prior state; state seeded, no event."""

    CROSSING_SERIALIZED = "crossing.serialized"
    """Crossing event serialized to JSON."""

    CROSSING_PUBLISHED = "crossing.published"
    """Crossing event published to broker."""

    CROSSING_RECEIVED = "crossing.received"
    """Crossing event received by subscriber."""

    CROSSING_RECORDED = "crossing.recorded"
    """Crossing event appended to the crossing log."""

    CROSSING_RECORD_FAILED = "crossing.record_failed"
    """Crossing log append failed."""

    # ========== Zone Events ==========
    ZONE_REFRESH_COMPLETED = "zone.refresh.completed"
    """Zone directory replaced with a fresh snapshot."""

    ZONE_REFRESH_FAILED = "zone.refresh.failed"
    """Zone source fetch failed; previous snapshot kept."""

    ZONE_SKIPPED = "zone.skipped"
    """Zone row rejected by validation."""

    ZONE_REPAIRED = "zone.repaired"
    """Zone ring was not closed and has been closed."""

    # ========== State Events ==========
    STATE_READ_FAILED = "state.read_failed"
    """Vehicle state cache read failed; treated as no prior state."""

    STATE_WRITE_FAILED = "state.write_failed"
    """Vehicle state cache write failed."""

    STATE_CORRUPT = "state.corrupt"
    """Stored vehicle state could not be decoded."""

    STATE_PURGED = "state.purged"
    """Expired vehicle states swept from the cache."""

    STATE_PURGE_FAILED = "state.purge_failed"
    """Sweeping expired vehicle states failed."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Message failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

    PROCESSING_ERROR = "error.processing"
    """Unexpected error while processing a position update."""


# Event categories for filtering
MQTT_EVENTS = {
    LogEvent.MQTT_CONNECTED,
    LogEvent.MQTT_DISCONNECTED,
    LogEvent.MQTT_PUBLISH_SUCCESS,
    LogEvent.MQTT_PUBLISH_FAILED,
    LogEvent.MQTT_PUBLISH_DROPPED,
}

POSITION_EVENTS = {
    LogEvent.POSITION_RECEIVED,
    LogEvent.POSITION_REJECTED,
    LogEvent.POSITION_DROPPED,
    LogEvent.POSITION_PROCESSED,
    LogEvent.POSITION_SERIALIZED,
}

CROSSING_EVENTS = {
    LogEvent.CROSSING_DETECTED,
    LogEvent.CROSSING_FIRST_SIGHTING,
    LogEvent.CROSSING_SERIALIZED,
    LogEvent.CROSSING_PUBLISHED,
    LogEvent.CROSSING_RECEIVED,
    LogEvent.CROSSING_RECORDED,
    LogEvent.CROSSING_RECORD_FAILED,
}

ZONE_EVENTS = {
    LogEvent.ZONE_REFRESH_COMPLETED,
    LogEvent.ZONE_REFRESH_FAILED,
    LogEvent.ZONE_SKIPPED,
    LogEvent.ZONE_REPAIRED,
}

STATE_EVENTS = {
    LogEvent.STATE_READ_FAILED,
    LogEvent.STATE_WRITE_FAILED,
    LogEvent.STATE_CORRUPT,
    LogEvent.STATE_PURGED,
    LogEvent.STATE_PURGE_FAILED,
}

ERROR_EVENTS = {
    LogEvent.SERIALIZATION_ERROR,
    LogEvent.DESERIALIZATION_ERROR,
    LogEvent.SCHEMA_VALIDATION_ERROR,
    LogEvent.MQTT_CONNECTION_ERROR,
    LogEvent.MQTT_PUBLISH_ERROR,
    LogEvent.PROCESSING_ERROR,
}
