"""Tests for bridge settings validation."""

import json

import pytest

from midea_bridge_lib.config import BridgeConfig, load_config


def test_defaults():
    config = BridgeConfig.from_dict({"host": "192.168.1.50"})
    assert config.port == 23
    assert config.reconnect_interval == 10
    assert config.timeout == 5
    assert config.variant == "bridge"
    assert config.polling_interval == 60
    assert not config.mode_as_number


def test_values_are_coerced():
    config = BridgeConfig.from_dict(
        {"host": " ac.local ", "port": "2323", "timeout": "2.5", "mode_as_number": "true", "unrelated": 1}
    )
    assert config.host == "ac.local"
    assert config.port == 2323
    assert config.timeout == 2.5
    assert config.mode_as_number is True
    assert config.representation.uses_numbers("mode")
    assert not config.representation.uses_numbers("fan_speed")


@pytest.mark.parametrize(
    "data",
    [
        {},
        {"host": ""},
        {"host": "ac.local", "port": 70000},
        {"host": "ac.local", "variant": "legacy"},
        {"host": "ac.local", "polling_interval": 2},
        {"host": "ac.local", "timeout": "soon"},
    ],
)
def test_invalid_settings(data):
    with pytest.raises(ValueError):
        BridgeConfig.from_dict(data)


def test_load_config(tmp_path):
    path = tmp_path / "bridge.json"
    path.write_text(json.dumps({"host": "10.0.0.7", "variant": "native"}))
    config = load_config(path)
    assert config.host == "10.0.0.7"
    assert config.variant == "native"
    assert BridgeConfig.from_dict(config.as_dict()) == config


def test_load_config_rejects_bad_json(tmp_path):
    path = tmp_path / "bridge.json"
    path.write_text("{host: nope")
    with pytest.raises(ValueError):
        load_config(path)
    path.write_text("[1, 2]")
    with pytest.raises(ValueError):
        load_config(path)
