#!/usr/bin/env python3
"""
Plant watering client

Polls a watering appliance for soil humidity and switches its pump over HTTP.

Usage:
    python waterer.py                         # TUI interactive mode (default)
    python waterer.py --read                  # Single humidity reading
    python waterer.py --water on              # Start watering
    python waterer.py --water off             # Stop watering
    python waterer.py --no-tui                # Plain console polling
    python waterer.py --simulate              # Run against the bundled simulator
    python waterer.py --address http://10.0.0.7:5000

The appliance exposes GET /humidity (JSON {"humidity": 0-1023}) and
POST /water (text "1" or "0").
"""

import argparse
import asyncio
import logging
import sys
import threading
import time

from appliance import ApplianceClient
from constants import DEVICE_ADDRESS, HTTP_TIMEOUT
from humidity import HumidityReading

logger = logging.getLogger("waterer")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Plant watering appliance client")
    parser.add_argument("--address", type=str, default=DEVICE_ADDRESS,
                        help=f"Appliance base URL (default: {DEVICE_ADDRESS})")
    parser.add_argument("--timeout", type=float, default=HTTP_TIMEOUT,
                        help=f"HTTP timeout in seconds (default: {HTTP_TIMEOUT})")
    parser.add_argument("--read", action="store_true", help="Single humidity reading")
    parser.add_argument("--water", choices=["on", "off"], help="Send one watering command")
    parser.add_argument("--no-tui", action="store_true",
                        help="Use plain console mode instead of TUI")
    parser.add_argument("--simulate", action="store_true",
                        help="Start the appliance simulator and connect to it")
    parser.add_argument("--sim-port", type=int, default=5000,
                        help="Simulator port (default 5000)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None) -> int:
    """Entry point — decides between TUI, console and one-shot mode."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.timeout <= 0:
        parser.error("--timeout must be positive")

    level = logging.DEBUG if args.verbose else logging.INFO
    is_oneshot = args.read or args.water is not None
    use_tui = not is_oneshot and not args.no_tui

    if use_tui:
        # Records go to the TUI log panel, not stderr
        logging.getLogger().setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)

    simulator = None
    address = args.address
    if args.simulate:
        simulator = _start_simulator(args.sim_port)
        address = f"http://127.0.0.1:{args.sim_port}"

    client = ApplianceClient(address, timeout=args.timeout)
    try:
        if use_tui:
            from tui_app import PlantWateringApp
            PlantWateringApp(client, log_level=level).run()
            return 0
        if is_oneshot:
            return asyncio.run(_run_oneshot(client, args))
        asyncio.run(_run_console(client))
        return 0
    finally:
        client.close()
        if simulator:
            _stop_simulator(simulator)


async def _run_oneshot(client: ApplianceClient, args) -> int:
    """Run a single --read or --water command. Exit status 0 on success."""
    if args.read:
        reading = await client.poll()
        print(f"Humidity: {reading.percent}%" if reading.is_ok
              else f"Humidity: unavailable ({reading.describe()})")
        return 0 if reading.is_ok else 1

    accepted = await client.set_watering(args.water == "on")
    print(f"Watering: {'ON' if client.state.watering else 'OFF'}"
          + ("" if accepted else " (command failed)"))
    return 0 if accepted else 1


async def _run_console(client: ApplianceClient):
    """Poll forever, printing each reading. Ctrl+C to stop."""
    print("\n" + "=" * 50)
    print("  Plant Watering Client")
    print("=" * 50)
    print(f"  Appliance: {client.address}")
    print(f"  Polling every {client.interval:.0f}s, Ctrl+C to stop\n")

    def show(reading: HumidityReading):
        suffix = "" if reading.is_ok else f"  (stale: {reading.describe()})"
        print(f"  Humidity: {reading.percent:3d}%  "
              f"Watering: {'ON' if client.state.watering else 'OFF'}{suffix}")

    await client.poll_loop(on_reading=show)


def _start_simulator(port: int):
    """Serve the simulated appliance from a background thread.

    Returns (server, thread). Raises SystemExit if uvicorn does not come up,
    e.g. when another process already holds the port.
    """
    import appliance_sim

    server = appliance_sim.build_server(port=port)
    # uvicorn only installs signal handlers on the main thread
    thread = threading.Thread(target=server.run, daemon=True, name="appliance-sim")
    thread.start()
    deadline = time.monotonic() + 5.0
    while not server.started and thread.is_alive() and time.monotonic() < deadline:
        time.sleep(0.05)
    if not server.started:
        _stop_simulator((server, thread))
        raise SystemExit(f"Simulator failed to start on port {port}")
    logger.info("Simulator listening on http://127.0.0.1:%d", port)
    return server, thread


def _stop_simulator(simulator):
    server, thread = simulator
    server.should_exit = True
    thread.join(timeout=5.0)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")
