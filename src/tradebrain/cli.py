"""Command-line interface for the tradebrain control loop."""

from __future__ import annotations

import argparse
import sys

from tradebrain.config import Settings, parse_symbols
from tradebrain.runtime import run, show_portfolio


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""
    parser = argparse.ArgumentParser(description="Autonomous AI trading control loop")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--simulation",
        dest="simulation",
        action="store_const",
        const=True,
        help="Force simulated execution",
    )
    mode.add_argument(
        "--live",
        dest="simulation",
        action="store_const",
        const=False,
        help="Trade live when broker credentials are configured",
    )
    parser.add_argument(
        "--no-trading",
        action="store_true",
        help="Scan and record prices without deciding or executing",
    )
    parser.add_argument("--interval-seconds", type=int, help="Seconds between cycle starts")
    parser.add_argument("--max-cycles", type=int, help="Stop after this many cycles")
    parser.add_argument("--symbols", type=str, help="Comma-separated symbol universe")
    parser.add_argument("--batch-size", type=int, help="Symbols sampled per cycle")
    parser.add_argument("--relay-url", type=str, help="Execution relay endpoint")
    parser.add_argument("--events-dir", type=str, help="Run outputs directory")
    parser.add_argument("--seed", type=int, help="Seed for symbol selection and the price walk")
    parser.add_argument(
        "--portfolio",
        action="store_true",
        help="List current live account balances and positions, then exit",
    )
    return parser


def apply_cli_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Apply CLI values onto environment-derived settings."""
    if args.max_cycles is not None and args.max_cycles <= 0:
        raise ValueError("--max-cycles must be positive")

    overrides: dict[str, object] = {}
    if args.simulation is not None:
        overrides["is_simulation"] = args.simulation
    if args.no_trading:
        overrides["trading_enabled"] = False
    if args.interval_seconds is not None:
        overrides["interval_seconds"] = args.interval_seconds
    if args.max_cycles is not None:
        overrides["max_cycles"] = args.max_cycles
    if args.symbols:
        overrides["symbols"] = parse_symbols(args.symbols, settings.symbols)
    if args.batch_size is not None:
        overrides["batch_size"] = args.batch_size
    if args.relay_url:
        overrides["relay_url"] = args.relay_url
    if args.events_dir:
        overrides["events_dir"] = args.events_dir
    if args.seed is not None:
        overrides["random_seed"] = args.seed

    merged = settings.with_overrides(**overrides)
    if args.portfolio and merged.is_simulation:
        raise ValueError("--portfolio cannot be combined with --simulation")
    return merged


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        settings = apply_cli_overrides(Settings.from_env(), args)
        if args.portfolio:
            return show_portfolio(settings)
    except ValueError as exc:
        print(f"Configuration error: {exc}")
        return 2
    return run(settings)


if __name__ == "__main__":
    sys.exit(main())
