"""Command-line entry point: ``python -m health_agent``."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .agent import HealthAgent
from .config.errors import ConfigurationError
from .config.settings import load_agent_config
from .logging_config import setup_logging
from .service_runner import run_async_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="health-agent", description="Run the health-monitoring agent.")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to the agent JSON config (defaults to $HEALTH_AGENT_CONFIG or config/agent.json)",
    )
    parser.add_argument("--log-level", default=None, help="Root log level (defaults to $LOG_LEVEL or INFO)")
    parser.add_argument("--check-config", action="store_true", help="Validate the config and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_agent_config(args.config)
    except ConfigurationError as exc:
        sys.stderr.write(f"Invalid configuration: {exc}\n")
        return 2

    if args.check_config:
        sys.stdout.write(f"Configuration OK: {len(config.targets)} target(s)\n")
        return 0

    setup_logging(config.service_name, level=args.log_level)
    agent = HealthAgent(config)
    run_async_service(agent.run_until, service_name=config.service_name, configure_logging=False)
    return 0


if __name__ == "__main__":
    sys.exit(main())
