"""
Zonetrack CLI - Command-line interface for the zone tracker.

Usage:
    zonetrack-cli refresh-zones
    zonetrack-cli vehicle-state taxi-7
    zonetrack-cli history taxi-7 --limit 20
    zonetrack-cli validate-zones --config config/tracker_config.yaml
    zonetrack-cli locate -73.985 40.758 --database data/zonetrack.db
    zonetrack-cli send-position taxi-7 40.758 -73.985 --speed 12.5
"""

__version__ = "1.0.0"
