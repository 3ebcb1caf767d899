"""
Zonetrack CLI - Main entry point.

Control commands go to a running tracker over MQTT; offline commands read
the zone source directly.
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from zonetrack_control.plane import COMMAND_TOPIC, STATUS_TOPIC
from zonetrack_zone import validate_zone
from zonetrack_mqtt.schemas import PositionUpdate
from zonetrack_processor.config import TrackerConfig
from zonetrack_processor.registry import ZoneDirectory
from zonetrack_processor.storage import SqliteZoneStore, YamlZoneSource

from .mqtt_client import MQTTCommandClient

CONTROL_COMMANDS = {
    "refresh-zones": "refresh_zones",
    "list-zones": "list_zones",
    "status": "status",
    "zone-stats": "zone_stats",
    "vehicle-state": "vehicle_state",
    "latest": "latest_positions",
    "history": "history",
}


def load_tracker_config(config_path: str) -> TrackerConfig:
    """
    Load the tracker YAML.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML is invalid
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        return TrackerConfig.from_yaml(path)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}")


def open_zone_source(args: argparse.Namespace):
    """Zone source named by --database or --config."""
    if args.database:
        return SqliteZoneStore(args.database)
    if args.config:
        config = load_tracker_config(args.config)
        if config.zones is not None:
            return YamlZoneSource(config.zones)
        return SqliteZoneStore(config.database_path)
    raise ValueError("one of --config or --database is required")


def build_control_command(args: argparse.Namespace) -> Dict[str, Any]:
    """Map CLI arguments to a control-plane command payload."""
    command: Dict[str, Any] = {"command": CONTROL_COMMANDS[args.command]}

    if args.command == "vehicle-state":
        command["vehicle_id"] = args.vehicle_id
    elif args.command == "zone-stats" and args.zone_id:
        command["zone_id"] = args.zone_id
    elif args.command == "history":
        if args.vehicle_id:
            command["vehicle_id"] = args.vehicle_id
        if args.limit is not None:
            command["limit"] = args.limit
        if args.offset:
            command["offset"] = args.offset

    return command


def send_command(
    command: Dict[str, Any],
    service_id: str = "tracker_01",
    broker: str = "localhost",
    port: int = 1883,
    wait: bool = True,
    timeout: float = 5.0
) -> Optional[Dict[str, Any]]:
    """Send command to the tracker, optionally waiting for its reply."""
    client = MQTTCommandClient(broker=broker, port=port)
    return client.send_command(
        COMMAND_TOPIC.format(service_id=service_id),
        command,
        status_topic=STATUS_TOPIC.format(service_id=service_id) if wait else None,
        timeout=timeout,
    )


def open_zone_store(args: argparse.Namespace) -> SqliteZoneStore:
    """Writable zone store named by --database or the config's database_path."""
    if args.database:
        return SqliteZoneStore(args.database)
    config = load_tracker_config(args.config)
    if config.zones is not None:
        raise ValueError(f"zones in {args.config} are defined inline; edit the YAML instead")
    return SqliteZoneStore(config.database_path)


def read_boundary(value: str) -> Any:
    """--boundary argument: inline GeoJSON or a path to a GeoJSON file."""
    text = value
    if not value.lstrip().startswith("{"):
        path = Path(value)
        if not path.exists():
            raise FileNotFoundError(f"Boundary file not found: {value}")
        text = path.read_text()
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Boundary is not valid JSON: {e}")
    # Accept a GeoJSON Feature wrapping the polygon
    if isinstance(data, dict) and data.get("type") == "Feature":
        data = data.get("geometry")
    return data


def cmd_add_zone(args: argparse.Namespace) -> int:
    """Validate a zone and insert or replace it in the zone store."""
    result = validate_zone({
        "id": args.zone_id,
        "name": args.name,
        "boundary": read_boundary(args.boundary),
    })
    if not result.is_valid:
        print(f"Rejected zone {args.zone_id}: {result.reason}", file=sys.stderr)
        return 1

    store = open_zone_store(args)
    try:
        store.upsert_zone(
            result.zone_id,
            result.name,
            result.zone.to_dict()["boundary"],
            position=args.position,
        )
    finally:
        store.close()

    note = " (ring closed)" if result.repaired else ""
    print(f"Saved zone {result.zone_id}  {result.name}{note}")
    return 0


def cmd_delete_zone(args: argparse.Namespace) -> int:
    store = open_zone_store(args)
    try:
        deleted = store.delete_zone(args.zone_id)
    finally:
        store.close()

    if not deleted:
        print(f"No zone with id {args.zone_id}", file=sys.stderr)
        return 1
    print(f"Deleted zone {args.zone_id}")
    return 0


def fix_repaired_zones(args: argparse.Namespace, results) -> int:
    """Write closed rings back to the store; returns how many were rewritten."""
    repaired = [r for r in results if r.is_valid and r.repaired]
    if not repaired:
        return 0
    store = open_zone_store(args)
    try:
        for r in repaired:
            store.upsert_zone(r.zone_id, r.name, r.zone.to_dict()["boundary"])
    finally:
        store.close()
    return len(repaired)


def cmd_validate_zones(args: argparse.Namespace) -> int:
    """Validate every zone row; exit status 1 when any row is rejected."""
    source = open_zone_source(args)
    results = [validate_zone(row) for row in source.list_zones()]
    fixed = fix_repaired_zones(args, results) if args.fix else 0

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
    else:
        for r in results:
            if r.is_valid:
                note = " (ring closed)" if r.repaired else ""
                print(f"OK    {r.zone_id}  {r.name}{note}")
            else:
                print(f"FAIL  {r.zone_id or '<no id>'}  {r.reason}")
        valid = sum(1 for r in results if r.is_valid)
        print(f"\n{valid}/{len(results)} zones valid")
        if fixed:
            print(f"{fixed} repaired zones written back")

    return 0 if all(r.is_valid for r in results) else 1


def cmd_locate(args: argparse.Namespace) -> int:
    """Show every zone containing a point and the one the tracker would pick."""
    directory = ZoneDirectory(open_zone_source(args))
    report = directory.refresh()
    if not report.success:
        print(f"Failed to load zones: {report.error}", file=sys.stderr)
        return 1

    point = (args.lng, args.lat)
    matches = directory.find_all_containing(point)
    chosen = directory.find_containing(point)

    if args.json:
        print(json.dumps({
            "point": {"lng": args.lng, "lat": args.lat},
            "containing": [{"id": z.zone_id, "name": z.name} for z in matches],
            "chosen": chosen,
        }, indent=2))
        return 0

    if not matches:
        print(f"({args.lng}, {args.lat}) is outside all {len(directory)} zones")
        return 0

    for zone in matches:
        marker = "*" if zone.zone_id == chosen else " "
        print(f"{marker} {zone.zone_id}  {zone.name}")
    if len(matches) > 1:
        print("\n* overlapping zones: the first in source order is used")
    return 0


def cmd_send_position(args: argparse.Namespace) -> int:
    """Publish one position update on the ingest topic."""
    update = PositionUpdate.from_dict({
        "vehicle_id": args.vehicle_id,
        "lat": args.lat,
        "lng": args.lng,
        "speed": args.speed,
    })

    if args.topic:
        topic = args.topic
    elif args.config:
        topic = load_tracker_config(args.config).topics["ingest"]
    else:
        topic = f"zonetrack/{args.service_id}/ingest"

    client = MQTTCommandClient(broker=args.broker, port=args.port)
    client.publish_json(topic, update.to_dict(), qos=0)
    print(f"Sent position for {update.vehicle_id} to {topic}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zonetrack-cli",
        description="Zonetrack CLI - control a running tracker and inspect zones",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Control commands (reply printed as JSON)
  zonetrack-cli refresh-zones
  zonetrack-cli list-zones
  zonetrack-cli vehicle-state taxi-7
  zonetrack-cli latest
  zonetrack-cli history taxi-7 --limit 20
  zonetrack-cli zone-stats --zone-id downtown

  # Offline zone checks
  zonetrack-cli validate-zones --config config/tracker_config.yaml
  zonetrack-cli validate-zones --database data/zonetrack.db --fix
  zonetrack-cli locate -73.985 40.758 --database data/zonetrack.db

  # Edit zones in the SQLite store
  zonetrack-cli add-zone downtown Downtown --boundary downtown.geojson --database data/zonetrack.db
  zonetrack-cli delete-zone downtown --database data/zonetrack.db

  # Inject a position update
  zonetrack-cli send-position taxi-7 40.758 -73.985 --speed 12.5
"""
    )

    # Global arguments
    parser.add_argument("--service-id", default="tracker_01",
                        help="Target service ID (default: tracker_01)")
    parser.add_argument("--broker", default="localhost",
                        help="MQTT broker host (default: localhost)")
    parser.add_argument("--port", type=int, default=1883,
                        help="MQTT broker port (default: 1883)")
    parser.add_argument("--timeout", type=float, default=5.0,
                        help="Seconds to wait for a reply (default: 5)")
    parser.add_argument("--no-wait", action="store_true",
                        help="Do not wait for the tracker's reply")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Control commands
    subparsers.add_parser("refresh-zones", help="Reload zones now")
    subparsers.add_parser("list-zones", help="List loaded zones")
    subparsers.add_parser("status", help="Query service status")

    zone_stats = subparsers.add_parser("zone-stats", help="Per-zone transition counts")
    zone_stats.add_argument("--zone-id", help="Only this zone")

    vehicle_state = subparsers.add_parser("vehicle-state", help="Last known zone of a vehicle")
    vehicle_state.add_argument("vehicle_id", help="Vehicle ID")

    subparsers.add_parser("latest", help="Last known state of every live vehicle")

    history = subparsers.add_parser("history", help="Crossing history")
    history.add_argument("vehicle_id", nargs="?", help="Vehicle ID (omit for all vehicles)")
    history.add_argument("--limit", type=int, help="Max rows (default: 50 per vehicle, 100 overall)")
    history.add_argument("--offset", type=int, default=0, help="Rows to skip (all-vehicle history only)")

    # Offline commands
    def add_source_args(sub: argparse.ArgumentParser) -> None:
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument("--config", help="Tracker YAML (inline zones or its database)")
        group.add_argument("--database", help="SQLite database with a zones table")
        sub.add_argument("--json", action="store_true", help="JSON output")

    validate = subparsers.add_parser("validate-zones", help="Check every zone definition")
    add_source_args(validate)
    validate.add_argument("--fix", action="store_true",
                          help="Write closed rings back to the zone database")

    def add_store_args(sub: argparse.ArgumentParser) -> None:
        group = sub.add_mutually_exclusive_group(required=True)
        group.add_argument("--config", help="Tracker YAML (uses its database_path)")
        group.add_argument("--database", help="SQLite database with a zones table")

    add_zone = subparsers.add_parser("add-zone", help="Insert or replace a zone")
    add_zone.add_argument("zone_id", help="Zone ID")
    add_zone.add_argument("name", help="Display name")
    add_zone.add_argument("--boundary", required=True,
                          help="GeoJSON Polygon, inline or a file path")
    add_zone.add_argument("--position", type=int,
                          help="Order among zones (default: keep, or last for new zones)")
    add_store_args(add_zone)

    delete_zone = subparsers.add_parser("delete-zone", help="Remove a zone")
    delete_zone.add_argument("zone_id", help="Zone ID")
    add_store_args(delete_zone)

    locate = subparsers.add_parser("locate", help="Which zone contains a point")
    locate.add_argument("lng", type=float, help="Longitude")
    locate.add_argument("lat", type=float, help="Latitude")
    add_source_args(locate)

    send_position = subparsers.add_parser("send-position", help="Publish a position update")
    send_position.add_argument("vehicle_id", help="Vehicle ID")
    send_position.add_argument("lat", type=float, help="Latitude")
    send_position.add_argument("lng", type=float, help="Longitude")
    send_position.add_argument("--speed", type=float, default=0.0, help="Speed (default: 0)")
    send_position.add_argument("--topic", help="Ingest topic (overrides --config)")
    send_position.add_argument("--config", help="Tracker YAML to read the ingest topic from")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "validate-zones":
            return cmd_validate_zones(args)

        if args.command == "locate":
            return cmd_locate(args)

        if args.command == "add-zone":
            return cmd_add_zone(args)

        if args.command == "delete-zone":
            return cmd_delete_zone(args)

        if args.command == "send-position":
            return cmd_send_position(args)

        command = build_control_command(args)
        reply = send_command(
            command,
            service_id=args.service_id,
            broker=args.broker,
            port=args.port,
            wait=not args.no_wait,
            timeout=args.timeout,
        )
        print(f"Command sent: {command['command']}")
        if args.no_wait:
            return 0
        if reply is None:
            print("No reply from tracker (timed out)", file=sys.stderr)
            return 1
        print(json.dumps(reply, indent=2))
        return 1 if reply.get("status") == "error" else 0

    except (ConnectionError, FileNotFoundError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
