#!/usr/bin/env python3
"""
Ruletrader CLI: backtest | validate | list-symbols
Usage:
  python main.py backtest [--config config.yaml] [--codes BHP,CBA] [--json result.json]
  python main.py validate [--config config.yaml]
  python main.py list-symbols [--config config.yaml]
"""

from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

# Project root
ROOT = Path(__file__).resolve().parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from ruletrader.backtesting.engine import format_summary, run_backtest
from ruletrader.core.config import load_config
from ruletrader.core.errors import (
    BarSourceError,
    ConfigError,
    InsufficientDataError,
    InvalidRuleError,
    NoDataError,
    RuleParseError,
    RuletraderError,
)
from ruletrader.core.logger import setup_logging
from ruletrader.data.csv_source import CsvBarSource
from ruletrader.data.universe import parse_codes
from ruletrader.strategies.strategy import required_indicators

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_RULE = 4
EXIT_DATA = 5

logger = logging.getLogger("ruletrader")


def exit_code_for(error: Exception) -> int:
    if isinstance(error, ConfigError):
        return EXIT_CONFIG
    if isinstance(error, (RuleParseError, InvalidRuleError)):
        return EXIT_RULE
    if isinstance(error, (NoDataError, InsufficientDataError, BarSourceError)):
        return EXIT_DATA
    return EXIT_ERROR


def cmd_backtest(config_path: Path | None, codes_arg: str | None, json_path: Path | None) -> int:
    """Run a backtest over the configured universe and print the summary."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    strategy = config.strategy()
    codes = parse_codes(codes_arg) if codes_arg else config.codes
    if not codes:
        raise ConfigError("data", "codes", "no codes configured")
    if not config.exchange:
        raise ConfigError("data", "exchange", "no exchange configured")
    source = CsvBarSource(config.csv_dir)
    result = run_backtest(source, strategy, config.backtest_settings(), codes, config.exchange)
    print(format_summary(result))
    if json_path is not None:
        json_path.parent.mkdir(parents=True, exist_ok=True)
        with open(json_path, "w", encoding="utf-8") as f:
            json.dump(result.to_dict(), f, indent=2)
        logger.info("Wrote result to %s", json_path)
    return EXIT_OK


def cmd_validate(config_path: Path | None) -> int:
    """Parse the strategy rules and list the indicators they need."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    strategy = config.strategy()
    print(f"Strategy: {strategy.name}")
    for label, rule in (
        ("entry_long", strategy.entry_long),
        ("exit_long", strategy.exit_long),
        ("entry_short", strategy.entry_short),
        ("exit_short", strategy.exit_short),
    ):
        if rule is not None:
            print(f"  {label}: {rule}")
    print("Indicators: " + ", ".join(str(k) for k in required_indicators(strategy)))
    return EXIT_OK


def cmd_list_symbols(config_path: Path | None) -> int:
    """List the codes available for the configured exchange with their date ranges."""
    config = load_config(config_path, ROOT)
    setup_logging(config.log_level, config.log_dir, config.log_file)
    if not config.exchange:
        raise ConfigError("data", "exchange", "no exchange configured")
    source = CsvBarSource(config.csv_dir)
    symbols = source.list_symbols(config.exchange)
    print(f"{len(symbols)} codes on {config.exchange} in {config.csv_dir}")
    for code in symbols:
        try:
            bars = source.fetch_bars(code, config.exchange)
        except BarSourceError as e:
            logger.warning("Cannot read %s: %s", code, e)
            print(f"  {code}: unreadable")
            continue
        if bars:
            print(f"  {code}: {bars[0].date} to {bars[-1].date} ({len(bars)} bars)")
        else:
            print(f"  {code}: no bars")
    return EXIT_OK


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Ruletrader CLI")
    parser.add_argument("mode", choices=["backtest", "validate", "list-symbols"], help="Run a backtest, validate the strategy or list codes")
    parser.add_argument("--config", type=Path, default=None, help="Path to config.yaml")
    parser.add_argument("--codes", default=None, help="Comma-separated codes, overrides config")
    parser.add_argument("--json", type=Path, default=None, help="Write the result bundle as JSON")
    args = parser.parse_args(argv)
    try:
        if args.mode == "backtest":
            return cmd_backtest(args.config, args.codes, args.json)
        if args.mode == "list-symbols":
            return cmd_list_symbols(args.config)
        return cmd_validate(args.config)
    except RuleParseError as e:
        print(f"error: {e.format_error()}", file=sys.stderr)
        return EXIT_RULE
    except (RuletraderError, ValueError) as e:
        print(f"error: {e}", file=sys.stderr)
        return exit_code_for(e) if isinstance(e, RuletraderError) else EXIT_CONFIG


if __name__ == "__main__":
    sys.exit(main())
