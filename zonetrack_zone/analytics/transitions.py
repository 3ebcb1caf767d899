"""
Zone Transition Module
======================

Transition rules for a single vehicle's zone membership.

Per vehicle, the phases are:

    UNSEEN        no (fresh) prior state; the next update only seeds state
    OUTSIDE       last known position in no zone
    IN_ZONE(z)    last known position in zone z

Transitions are driven solely by the containment result of each update.
Comparison is by zone id; None means "outside all zones".

    previous None, current z       -> ENTER
    previous z,    current None    -> EXIT
    previous a,    current b (a!=b)-> CROSSING
    previous == current            -> no event
"""

from enum import Enum
from typing import Optional


class EventType(str, Enum):
    """Zone transition event type."""
    ENTER = "ENTER"          # Outside -> zone
    EXIT = "EXIT"            # Zone -> outside
    CROSSING = "CROSSING"    # Zone -> different zone


class VehiclePhase(str, Enum):
    """Per-vehicle membership phase."""
    UNSEEN = "unseen"
    OUTSIDE = "outside"
    IN_ZONE = "in_zone"


def classify_transition(
    previous_zone_id: Optional[str],
    current_zone_id: Optional[str],
) -> Optional[EventType]:
    """
    Classify a change of zone membership.

    Only call this when prior state existed; a first sighting never
    produces an event.

    Returns:
        EventType, or None when the zone did not change
    """
    if previous_zone_id == current_zone_id:
        return None
    if previous_zone_id is None:
        return EventType.ENTER
    if current_zone_id is None:
        return EventType.EXIT
    return EventType.CROSSING


def phase_of(has_prior_state: bool, zone_id: Optional[str]) -> VehiclePhase:
    """Phase implied by stored state (or its absence)."""
    if not has_prior_state:
        return VehiclePhase.UNSEEN
    if zone_id is None:
        return VehiclePhase.OUTSIDE
    return VehiclePhase.IN_ZONE
