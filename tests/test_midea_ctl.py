"""Tests for the command-line helpers."""

import argparse
import json

import pytest

import midea_ctl


def _args(**overrides):
    defaults = {"config": None, "host": None, "port": None, "timeout": None, "variant": None, "numeric": False}
    defaults.update(overrides)
    return argparse.Namespace(**defaults)


def test_build_config_from_flags():
    config = midea_ctl.build_config(_args(host="ac.local", port=2323, numeric=True))
    assert (config.host, config.port) == ("ac.local", 2323)
    assert config.representation.uses_numbers("swing_mode")


def test_flags_override_config_file(tmp_path):
    path = tmp_path / "bridge.json"
    path.write_text(json.dumps({"host": "ac.local", "timeout": 9}))
    config = midea_ctl.build_config(_args(config=str(path), timeout=1.5))
    assert config.host == "ac.local"
    assert config.timeout == 1.5


def test_host_is_required():
    with pytest.raises(ValueError):
        midea_ctl.build_config(_args())


def test_parse_cli_value():
    assert midea_ctl.parse_cli_value("true") is True
    assert midea_ctl.parse_cli_value("24.5") == 24.5
    assert midea_ctl.parse_cli_value("cool") == "cool"


def test_format_value():
    assert midea_ctl.format_value("power", True) == "on"
    assert midea_ctl.format_value("indoor_temperature", 22.5) == "22.5°C"
    assert midea_ctl.format_value("target_temperature", 24) == "24°C"
    assert midea_ctl.format_value("mode", None) == "--"
