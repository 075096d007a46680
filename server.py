#!/usr/bin/env python3
"""Web control panel API for a Midea air conditioner behind a serial bridge."""

import asyncio
import json
import logging
import os
import threading

from flask import Flask, Response, request

from midea_bridge_lib import BridgeConfig, MideaBridgeError, MideaSerialBridge, TransportError, load_config

_LOGGER = logging.getLogger(__name__)

app = Flask(__name__)

CONFIG_ENV = "MIDEA_BRIDGE_CONFIG"
HOST_ENV = "MIDEA_BRIDGE_HOST"
PORT_ENV = "MIDEA_BRIDGE_PORT"

# Extra seconds on top of the bridge timeout before the HTTP side gives up
CALL_GRACE = 2.0

# --- Bridge management ---
_runner = None
_lock = threading.Lock()


class BridgeRunner:
    """Runs the asyncio bridge on a background loop thread.

    Flask handlers run on their own threads; they hand coroutines to the
    loop with ``call`` so the bridge is only ever touched from one thread.
    """

    def __init__(self, config: BridgeConfig):
        self.config = config
        self.loop = asyncio.new_event_loop()
        self.bridge = MideaSerialBridge.from_config(config)
        self._thread = threading.Thread(target=self._run_loop, name="midea-bridge", daemon=True)

    def _run_loop(self):
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()

    def start(self):
        self._thread.start()
        self.call(self._connect)

    def stop(self):
        if not self._thread.is_alive():
            return
        self.call(self.bridge.disconnect)
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=5)

    async def _connect(self):
        try:
            await self.bridge.connect()
        except TransportError as err:
            # Reconnect timer is armed; requests fail until it succeeds
            _LOGGER.warning("Bridge not reachable yet: %s", err)

    def call(self, fn, *args, **kwargs):
        """Run ``fn(*args, **kwargs)`` on the loop and wait for its result.

        A call still running at the deadline is cancelled on the loop before
        the TimeoutError reaches the caller.
        """
        future = asyncio.run_coroutine_threadsafe(fn(*args, **kwargs), self.loop)
        try:
            return future.result(self.config.timeout + CALL_GRACE)
        except TimeoutError:
            if future.cancel():
                _LOGGER.warning("Cancelled %s after %ss", getattr(fn, "__name__", fn), self.config.timeout + CALL_GRACE)
            raise


def load_server_config() -> BridgeConfig:
    path = os.environ.get(CONFIG_ENV)
    if path:
        return load_config(path)
    host = os.environ.get(HOST_ENV)
    if not host:
        raise RuntimeError(f"Set {CONFIG_ENV} or {HOST_ENV} to point at the serial bridge.")
    data = {"host": host}
    if os.environ.get(PORT_ENV):
        data["port"] = os.environ[PORT_ENV]
    return BridgeConfig.from_dict(data)


def get_runner() -> BridgeRunner:
    global _runner
    with _lock:
        if _runner is None:
            runner = BridgeRunner(load_server_config())
            runner.start()
            _runner = runner
        return _runner


def json_response(data, status=200):
    return Response(json.dumps(data), status=status, mimetype="application/json")


def error_response(err: Exception):
    if isinstance(err, ValueError):
        status = 400
    elif isinstance(err, TimeoutError):
        status = 504
    elif isinstance(err, MideaBridgeError):
        status = 502
    else:
        _LOGGER.exception("Unexpected error handling %s", request.path)
        status = 500
    return json_response({"error": str(err) or type(err).__name__}, status)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


# --- Routes ---


@app.route("/api/status")
def api_status():
    try:
        runner = get_runner()
        values = runner.call(runner.bridge.get_status)
        return json_response({
            "connected": runner.bridge.connected,
            "version": runner.bridge.status_version,
            "values": values,
        })
    except Exception as e:
        return error_response(e)


@app.route("/api/set", methods=["POST"])
def api_set():
    try:
        data = _json_body()
        datapoint = data.get("datapoint")
        if not datapoint or "value" not in data:
            raise ValueError("Both 'datapoint' and 'value' are required")
        runner = get_runner()
        value = runner.call(
            runner.bridge.set,
            datapoint,
            data["value"],
            refresh=bool(data.get("refresh", False)),
        )
        return json_response({"ok": True, "datapoint": datapoint, "value": value})
    except Exception as e:
        return error_response(e)


@app.route("/api/command", methods=["POST"])
def api_command():
    try:
        command = _json_body()
        runner = get_runner()
        result = runner.call(runner.bridge.send_command, command)
        if isinstance(result, bytes):
            return json_response({"ok": True, "payload": result.hex()})
        return json_response({"ok": True, "values": result})
    except Exception as e:
        return error_response(e)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    get_runner()
    print("Starting Midea serial bridge control panel...")
    print("Open http://localhost:5050")
    app.run(host="0.0.0.0", port=5050, debug=False)
