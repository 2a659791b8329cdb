"""
flood-lab/main.py

Flood-Lab — Entry Point
=======================
Wires together the simulation, its tick driver and the dashboard.

Usage:
    # Dashboard mode (front-end connects over Socket.IO):
    python main.py

    # Custom port for dashboard:
    python main.py --port 8080

    # Headless run with a UDP flood from 200 devices behind a proxy:
    python main.py --no-dashboard --attack UDP --devices 200 --proxy
"""

import argparse
import logging
import os
import random
import signal
import sys
import time

# ── Logging Setup ──
os.makedirs("logs", exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s — %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("logs/floodlab.log"),
    ],
)
logger = logging.getLogger("floodlab")

# ── Import Core Modules ──
from core.orchestrator import Orchestrator
from simulator.loop import TickDriver
from config import (
    DASHBOARD_HOST,
    DASHBOARD_PORT,
    STATUS_LOG_INTERVAL,
    TICK_FPS,
)

# ── Banner ──
BANNER = r"""
  _____ _                 _       _          _
 |  ___| | ___   ___   __| |     | |    __ _| |__
 | |_  | |/ _ \ / _ \ / _` |_____| |   / _` | '_ \
 |  _| | | (_) | (_) | (_| |_____| |__| (_| | |_) |
 |_|   |_|\___/ \___/ \__,_|     |_____\__,_|_.__/
  Denial-of-Service Teaching Simulator
  ─────────────────────────────────────────────
"""


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Flood-Lab DoS Teaching Simulator")
    parser.add_argument(
        "--host",
        default=DASHBOARD_HOST,
        help=f"Dashboard host (default: {DASHBOARD_HOST})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=DASHBOARD_PORT,
        help=f"Dashboard port (default: {DASHBOARD_PORT})",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=TICK_FPS,
        help=f"Simulation ticks per second (default: {TICK_FPS})",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed the random source for a reproducible run",
    )
    parser.add_argument(
        "--no-dashboard",
        action="store_true",
        help="Run headless without the web dashboard",
    )
    parser.add_argument(
        "--attack",
        default=None,
        metavar="TYPE",
        help="Start an attack immediately (UDP, ICMP or TCP_SYN)",
    )
    parser.add_argument(
        "--devices",
        type=int,
        default=None,
        help="Botnet device count for --attack",
    )
    parser.add_argument(
        "--proxy",
        action="store_true",
        help="Put the server behind the reverse proxy",
    )
    return parser.parse_args(argv)


def build(args):
    """Create the orchestrator and tick driver configured from CLI args."""
    orchestrator = Orchestrator(rng=random.Random(args.seed))
    driver = TickDriver(orchestrator, fps=args.fps)

    if args.proxy:
        orchestrator.set_reverse_proxy_enabled(True)
    if args.attack:
        orchestrator.set_attack_type(args.attack)
        if args.devices is not None:
            orchestrator.set_device_count(args.devices)
        if args.proxy:
            # Attackers that resolved the new address follow the proxy
            orchestrator.set_target_ip(orchestrator.server.public_ip)
    return orchestrator, driver


def main(argv=None):
    print(BANNER)
    args = parse_args(argv)

    logger.info("Initializing Flood-Lab components...")
    orchestrator, driver = build(args)

    # ── Graceful Shutdown ──
    def shutdown(sig=None, frame=None):
        logger.info("\nShutting down Flood-Lab...")
        driver.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    if not args.no_dashboard:
        from dashboard.app import init_dashboard, run_dashboard
        init_dashboard(orchestrator, driver)
        driver.start()
        logger.info(f"Opening dashboard on http://localhost:{args.port}")
        run_dashboard(host=args.host, port=args.port, debug=False)
        return

    # ── Headless ──
    orchestrator.start_simulation()
    if args.attack:
        orchestrator.start_attack()
    driver.start()
    logger.info("Running headless. Press Ctrl+C to stop.")
    while True:
        time.sleep(STATUS_LOG_INTERVAL)
        with driver.lock:
            stats = orchestrator.get_stats()
            server = orchestrator.server.get_stats()
        logger.info(
            f"[STATUS] {stats['server_status']} | "
            f"BW={server['bandwidth_usage']:.0f}% CPU={server['cpu_load']:.0f}% | "
            f"Happiness={stats['happiness_score']:.0f} | "
            f"Allowed={stats['allowed']} Blocked={stats['blocked']} "
            f"Dropped={stats['dropped']} Missed={stats['missed']}"
        )


if __name__ == "__main__":
    main()
