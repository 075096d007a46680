#!/usr/bin/env python3
"""Midea air conditioner control via a TCP serial bridge.

Usage:
    ./midea_ctl.py --host 192.168.1.50 status              # read current state
    ./midea_ctl.py --host 192.168.1.50 query mode          # ask for one datapoint
    ./midea_ctl.py --host 192.168.1.50 set target_temperature 24
    ./midea_ctl.py --host 192.168.1.50 command '{"power": true, "mode": "cool"}'
    ./midea_ctl.py --config bridge.json monitor            # print status pushes
"""

import argparse
import asyncio
import json
import logging
import sys

from midea_bridge_lib import BridgeConfig, MideaBridgeError, MideaSerialBridge, load_config
from midea_bridge_lib.const import DEFAULT_PORT, VARIANT_BRIDGE, VARIANT_NATIVE
from midea_bridge_lib.events import EVENT_CONNECTED, EVENT_DISCONNECTED, EVENT_ERROR, EVENT_STATUS_DATA
from midea_bridge_lib.protocol import REQUESTS

STATUS_LABELS = [
    ("power", "Power"),
    ("mode", "Mode"),
    ("target_temperature", "Target"),
    ("indoor_temperature", "Indoor"),
    ("outdoor_temperature", "Outdoor"),
    ("fan_speed", "Fan"),
    ("swing_mode", "Swing"),
    ("eco_mode", "Eco"),
    ("turbo_mode", "Turbo"),
    ("sleep_mode", "Sleep"),
]

TEMPERATURE_KEYS = ("target_temperature", "indoor_temperature", "outdoor_temperature")


def format_value(key: str, value) -> str:
    if value is None:
        return "--"
    if isinstance(value, bool):
        return "on" if value else "off"
    if key in TEMPERATURE_KEYS:
        return f"{value:g}°C"
    return str(value)


def print_status(values: dict):
    for key, label in STATUS_LABELS:
        print(f"{label + ':':<9s}{format_value(key, values.get(key))}")


def build_config(args) -> BridgeConfig:
    """Merge the optional JSON file with command-line overrides."""
    data = load_config(args.config).as_dict() if args.config else {}
    for key in ("host", "port", "timeout", "variant"):
        value = getattr(args, key)
        if value is not None:
            data[key] = value
    if args.numeric:
        data["mode_as_number"] = True
        data["fan_speed_as_number"] = True
        data["swing_mode_as_number"] = True
    if "host" not in data:
        raise ValueError("--host or --config is required")
    return BridgeConfig.from_dict(data)


def parse_cli_value(text: str):
    """Accept JSON literals (true, 24.5) and fall back to the raw string."""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


async def cmd_status(bridge: MideaSerialBridge, args):
    print_status(await bridge.get_status())


async def cmd_query(bridge: MideaSerialBridge, args):
    value = await bridge.query(args.datapoint, require_fresh=not args.cached)
    print(f"{args.datapoint}: {format_value(args.datapoint, value)}")


async def cmd_set(bridge: MideaSerialBridge, args):
    unconfirmed = []
    bridge.on("unconfirmed", lambda datapoint, value, err: unconfirmed.append(err))
    value = await bridge.set(args.datapoint, parse_cli_value(args.value), refresh=args.refresh)
    if unconfirmed:
        print(f"{args.datapoint}: {format_value(args.datapoint, value)} (not confirmed: {unconfirmed[0]})")
    else:
        print(f"{args.datapoint}: {format_value(args.datapoint, value)}")


async def cmd_command(bridge: MideaSerialBridge, args):
    try:
        command = json.loads(args.json)
    except json.JSONDecodeError as err:
        raise ValueError(f"Invalid JSON command: {err}") from err
    result = await bridge.send_command(command)
    if isinstance(result, bytes):
        print(f"Response: {result.hex(' ') or '<empty>'}")
    else:
        for key, value in result.items():
            print(f"{key}: {format_value(key, value)}")


async def cmd_monitor(bridge: MideaSerialBridge, args):
    def on_status(report, raw):
        print(f"[{raw.hex(' ')}]")
        print_status(bridge.representation.present_all(report.values))
        print()

    bridge.on(EVENT_STATUS_DATA, on_status)
    bridge.on(EVENT_CONNECTED, lambda: print("[connected]"))
    bridge.on(EVENT_DISCONNECTED, lambda: print("[disconnected, reconnecting]"))
    bridge.on(EVENT_ERROR, lambda err: print(f"[error: {err}]"))
    print(f"Monitoring {bridge.host}:{bridge.port} (Ctrl-C to stop)")
    if args.duration:
        await asyncio.sleep(args.duration)
    else:
        await asyncio.Event().wait()


COMMANDS = {
    "status": cmd_status,
    "query": cmd_query,
    "set": cmd_set,
    "command": cmd_command,
    "monitor": cmd_monitor,
}


async def run(config: BridgeConfig, args):
    bridge = MideaSerialBridge.from_config(config)
    await bridge.connect()
    try:
        await COMMANDS[args.command](bridge, args)
    finally:
        await bridge.disconnect()


def main():
    parser = argparse.ArgumentParser(description="Midea air conditioner control via serial bridge")
    parser.add_argument("--host", help="serial bridge address")
    parser.add_argument("--port", type=int, help=f"serial bridge TCP port (default {DEFAULT_PORT})")
    parser.add_argument("--config", help="JSON file with bridge settings")
    parser.add_argument("--timeout", type=float, help="seconds to wait for each reply")
    parser.add_argument(
        "--variant",
        choices=[VARIANT_BRIDGE, VARIANT_NATIVE],
        help="status frame layout (default bridge)",
    )
    parser.add_argument("--numeric", action="store_true", help="show mode/fan/swing as numbers")
    parser.add_argument("-v", "--verbose", action="store_true", help="log frame traffic")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="read the current state")

    query_parser = sub.add_parser("query", help="read one datapoint")
    query_parser.add_argument("datapoint", choices=sorted(REQUESTS))
    query_parser.add_argument("--cached", action="store_true", help="accept the last known value")

    set_parser = sub.add_parser("set", help="write one datapoint")
    set_parser.add_argument("datapoint", choices=sorted(k for k, v in REQUESTS.items() if v.writable))
    set_parser.add_argument("value", help="new value, e.g. cool, 24.5, true")
    set_parser.add_argument("--refresh", action="store_true", help="request a status frame after writing")

    command_parser = sub.add_parser("command", help="send a JSON command object")
    command_parser.add_argument("json", help='e.g. \'{"power": true}\' or \'{"command": 65}\'')

    monitor_parser = sub.add_parser("monitor", help="print status frames as they arrive")
    monitor_parser.add_argument("--duration", type=float, help="stop after this many seconds")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = build_config(args)
        asyncio.run(run(config, args))
    except KeyboardInterrupt:
        pass
    except (MideaBridgeError, ValueError, OSError) as err:
        print(f"Error: {err}")
        sys.exit(1)


if __name__ == "__main__":
    main()
