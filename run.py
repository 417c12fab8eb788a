#!/usr/bin/env python3
"""
marketsim - Quick Start Script
Runs a simulation session from a YAML config and logs a final summary.
"""
import argparse
import signal
import sys
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

sys.path.insert(0, str(Path(__file__).parent))

from marketsim.config import ConfigManager, get_config
from marketsim.session import SimulationSession
from marketsim.utils.logging import get_logger
from marketsim.utils.shutdown_handler import SHUTDOWN_HANDLER

LOGGER = get_logger("marketsim.run")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run a synthetic market trading simulation")
    parser.add_argument("--config", help="YAML config file (default: $MARKETSIM_CONFIG or configs/default.yaml)")
    parser.add_argument("--duration", type=float, default=30.0, help="Seconds to run")
    parser.add_argument("--speed", type=float, help="Speed multiplier")
    parser.add_argument("--seed", type=int, help="Random seed")
    parser.add_argument("--strategy", action="append", default=[], help="Strategy to activate (repeatable)")
    parser.add_argument("--select", help="Asset evaluated by strategies")
    parser.add_argument("--state-file", help="Load/save session state at this path")
    return parser.parse_args(argv)


def build_config(args) -> ConfigManager:
    config = ConfigManager.from_yaml(args.config) if args.config else get_config()
    overrides = {"simulation": {}, "portfolio": {}}
    if args.speed is not None:
        overrides["simulation"]["speed_multiplier"] = args.speed
    if args.seed is not None:
        overrides["simulation"]["seed"] = args.seed
    if args.select:
        overrides["portfolio"]["selected_asset"] = args.select
    if args.state_file:
        overrides["portfolio"]["state_file"] = args.state_file
    config.merge(overrides)
    return config


def main(argv=None):
    args = parse_args(argv)
    config = build_config(args)

    session = SimulationSession(config)
    SHUTDOWN_HANDLER.register_session(session)
    signal.signal(signal.SIGINT, SHUTDOWN_HANDLER)
    signal.signal(signal.SIGTERM, SHUTDOWN_HANDLER)

    for name in args.strategy:
        session.activate_strategy(name)

    try:
        session.run(duration=args.duration)
    finally:
        snapshot = session.snapshot()
        SHUTDOWN_HANDLER.shutdown()

    LOGGER.info(
        f"Finished after tick {snapshot['tick']}: total value {snapshot['total_value']:.2f}, "
        f"ROI {snapshot['roi']:.2f}%, {len(snapshot['transactions'])} transaction(s)"
    )
    for symbol, amount in snapshot["holdings"].items():
        LOGGER.info(f"  {symbol}: {amount:.8f}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
