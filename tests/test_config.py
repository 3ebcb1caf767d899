from pathlib import Path

import pytest

from zonetrack_processor.config import MQTTConfig, TrackerConfig

CONFIG_YAML = """
service_id: "tracker_test"
zone_refresh_interval_s: 60
state_ttl_s: 120
workers: 2
database_path: "{db}"

zones:
  - id: "downtown"
    name: "Downtown"
    boundary:
      type: Polygon
      coordinates: [[[0, 0], [1, 0], [1, 1], [0, 1], [0, 0]]]

mqtt_config:
  broker: "mqtt.local"
  port: 1884
  qos: 1
"""


def test_from_yaml(tmp_path):
    path = tmp_path / "tracker.yaml"
    path.write_text(CONFIG_YAML.format(db=tmp_path / "z.db"))

    config = TrackerConfig.from_yaml(path)

    assert config.service_id == "tracker_test"
    assert config.zone_refresh_interval_s == 60
    assert config.state_ttl_s == 120
    assert config.workers == 2
    assert config.database_path == tmp_path / "z.db"
    assert config.zones[0]["id"] == "downtown"
    assert config.mqtt_config.broker == "mqtt.local"
    assert config.mqtt_config.qos == 1


def test_topics_resolve_service_id():
    config = TrackerConfig(service_id="t1")
    assert config.topics == {
        "ingest": "zonetrack/t1/ingest",
        "position": "zonetrack/t1/positions",
        "crossing": "zonetrack/t1/crossings",
    }


def test_defaults():
    config = TrackerConfig.from_dict({"service_id": "t1"})
    assert config.zone_refresh_interval_s == 3600
    assert config.state_ttl_s == 300
    assert config.zones is None
    assert config.database_path == Path("./data/zonetrack.db")


@pytest.mark.parametrize("overrides", [
    {"service_id": ""},
    {"zone_refresh_interval_s": 0},
    {"zone_refresh_interval_s": 3601},
    {"state_ttl_s": 0},
    {"workers": 0},
    {"workers": 65},
    {"worker_queue_size": 0},
    {"publish_queue_size": 0},
    {"zones": {"id": "not a list"}},
])
def test_tracker_config_validation(overrides):
    data = {"service_id": "t1", **overrides}
    with pytest.raises(ValueError):
        TrackerConfig.from_dict(data)


@pytest.mark.parametrize("kwargs", [
    {"broker": ""},
    {"port": 0},
    {"qos": 3},
    {"crossing_topic": ""},
])
def test_mqtt_config_validation(kwargs):
    with pytest.raises(ValueError):
        MQTTConfig(**kwargs)


def test_non_mapping_config_rejected():
    with pytest.raises(ValueError):
        TrackerConfig.from_dict(["service_id", "t1"])


def test_sample_config_loads():
    path = Path(__file__).resolve().parent.parent / "config" / "tracker_config.yaml"
    config = TrackerConfig.from_yaml(path)
    assert [z["id"] for z in config.zones] == ["downtown", "midtown", "harbor"]
