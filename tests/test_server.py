"""Tests for the Flask control panel API."""

import asyncio
import json
import threading
from unittest.mock import Mock, patch

import pytest

import server
from midea_bridge_lib import BridgeConfig, BridgeTimeoutError, TransportError


@pytest.fixture
def runner():
    runner = Mock()
    runner.bridge.connected = True
    runner.bridge.status_version = 3
    return runner


@pytest.fixture
def client(runner):
    with patch.object(server, "get_runner", return_value=runner):
        yield server.app.test_client()


def test_status(client, runner):
    runner.call.return_value = {"power": True, "mode": "cool"}
    resp = client.get("/api/status")
    assert resp.status_code == 200
    assert resp.get_json() == {"connected": True, "version": 3, "values": {"power": True, "mode": "cool"}}
    runner.call.assert_called_once_with(runner.bridge.get_status)


def test_status_timeout_maps_to_504(client, runner):
    runner.call.side_effect = BridgeTimeoutError("Status update timeout")
    resp = client.get("/api/status")
    assert resp.status_code == 504
    assert "timeout" in resp.get_json()["error"]


def test_bridge_error_maps_to_502(client, runner):
    runner.call.side_effect = TransportError("Not connected to serial bridge")
    resp = client.get("/api/status")
    assert resp.status_code == 502


def test_set(client, runner):
    runner.call.return_value = 24
    resp = client.post("/api/set", json={"datapoint": "target_temperature", "value": 24})
    assert resp.status_code == 200
    assert resp.get_json() == {"ok": True, "datapoint": "target_temperature", "value": 24}
    runner.call.assert_called_once_with(runner.bridge.set, "target_temperature", 24, refresh=False)


def test_set_requires_datapoint_and_value(client, runner):
    resp = client.post("/api/set", json={"datapoint": "mode"})
    assert resp.status_code == 400
    resp = client.post("/api/set", data="not json", content_type="application/json")
    assert resp.status_code == 400
    runner.call.assert_not_called()


def test_set_invalid_value_maps_to_400(client, runner):
    runner.call.side_effect = ValueError("Unknown mode value 'blizzard'")
    resp = client.post("/api/set", json={"datapoint": "mode", "value": "blizzard"})
    assert resp.status_code == 400
    assert resp.get_json() == {"error": "Unknown mode value 'blizzard'"}


def test_raw_command_payload_is_hex(client, runner):
    runner.call.return_value = b"\x07\x01"
    resp = client.post("/api/command", json={"command": 48, "payload": [1]})
    assert resp.get_json() == {"ok": True, "payload": "0701"}


def test_command_object(client, runner):
    runner.call.return_value = {"power": True}
    resp = client.post("/api/command", json={"power": True})
    assert resp.get_json() == {"ok": True, "values": {"power": True}}
    runner.call.assert_called_once_with(runner.bridge.send_command, {"power": True})


def test_server_config_from_host_env(monkeypatch):
    monkeypatch.delenv(server.CONFIG_ENV, raising=False)
    monkeypatch.setenv(server.HOST_ENV, "192.168.1.50")
    monkeypatch.setenv(server.PORT_ENV, "2323")
    config = server.load_server_config()
    assert (config.host, config.port) == ("192.168.1.50", 2323)


def test_server_config_from_file(monkeypatch, tmp_path):
    path = tmp_path / "bridge.json"
    path.write_text(json.dumps({"host": "ac.local", "timeout": 2}))
    monkeypatch.setenv(server.CONFIG_ENV, str(path))
    assert server.load_server_config().timeout == 2


def test_server_config_missing(monkeypatch):
    monkeypatch.delenv(server.CONFIG_ENV, raising=False)
    monkeypatch.delenv(server.HOST_ENV, raising=False)
    with pytest.raises(RuntimeError):
        server.load_server_config()


def test_runner_cancels_call_after_deadline(monkeypatch):
    monkeypatch.setattr(server, "CALL_GRACE", 0.05)
    runner = server.BridgeRunner(BridgeConfig.from_dict({"host": "127.0.0.1", "timeout": 0.1}))
    runner._thread.start()
    cancelled = threading.Event()

    async def slow():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    try:
        with pytest.raises(TimeoutError):
            runner.call(slow)
        assert cancelled.wait(1)
    finally:
        runner.stop()
