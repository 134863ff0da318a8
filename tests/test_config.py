import json
import logging

import pytest
import yaml

from roomba_oi.config import LinkConfig, config_from_mapping, configure_logging, load_config


def test_defaults():
    cfg = LinkConfig()
    assert cfg.device == "/dev/ttyUSB0"
    assert cfg.baudrate == 115200
    assert cfg.max_payload is None


def test_load_yaml(tmp_path):
    p = tmp_path / "link.yaml"
    p.write_text(yaml.safe_dump({"device": "/dev/ttyS1", "baudrate": 57600, "max_payload": 80}))
    cfg = load_config(p)
    assert cfg.device == "/dev/ttyS1"
    assert cfg.baudrate == 57600
    assert cfg.max_payload == 80


def test_load_yaml_link_section(tmp_path):
    p = tmp_path / "robot.yml"
    p.write_text("link:\n  device: /dev/rfcomm0\n  idle_timeout: 2.5\n")
    cfg = load_config(p)
    assert cfg.device == "/dev/rfcomm0"
    assert cfg.idle_timeout == 2.5


def test_load_json(tmp_path):
    p = tmp_path / "link.json"
    p.write_text(json.dumps({"timeout": 0.1, "log_level": "debug"}))
    cfg = load_config(p)
    assert cfg.timeout == 0.1
    assert cfg.log_level == "debug"


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


@pytest.mark.parametrize("data", [
    {"baudrate": 12345},
    {"timeout": 0},
    {"max_payload": 300},
    {"bus_capacity": 0},
    {"log_level": "LOUD"},
    {"colour": "red"},
    {"baudrate": "fast"},
])
def test_invalid_values(data):
    with pytest.raises(ValueError):
        config_from_mapping(data)


def test_invalid_yaml(tmp_path):
    p = tmp_path / "bad.yaml"
    p.write_text("device: [unclosed\n")
    with pytest.raises(ValueError):
        load_config(p)


def test_non_mapping_document(tmp_path):
    p = tmp_path / "list.json"
    p.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(p)


def test_configure_logging_accepts_names():
    configure_logging("warning")
    logging.getLogger("roomba_oi.test").debug("not shown")
