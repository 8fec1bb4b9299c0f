"""
Load configuration from config.yaml and .env. Environment variables override
the file for run parameters and the data universe.
"""

from __future__ import annotations
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from ruletrader.core.errors import ConfigError


def _env_path(project_root: Optional[Path] = None) -> Path:
    root = project_root or Path(__file__).resolve().parents[2]
    return root / ".env"


def load_dotenv_if_exists(project_root: Optional[Path] = None) -> None:
    """Load .env from project root if present."""
    path = _env_path(project_root)
    if path.exists():
        load_dotenv(path)


def _parse_date(value: Any, key: str) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError as e:
        raise ConfigError("backtest", key, f"invalid {key} format, expected YYYY-MM-DD") from e


def _parse_codes(value: Any) -> List[str]:
    if value is None or value == "":
        return []
    if isinstance(value, (list, tuple)):
        value = ",".join(str(v) for v in value)
    from ruletrader.data.universe import parse_codes

    try:
        return parse_codes(str(value))
    except ValueError as e:
        raise ConfigError("data", "codes", str(e)) from e


def load_config(config_path: Optional[Path] = None, project_root: Optional[Path] = None) -> "Config":
    """Load config.yaml and overlay with env. Returns Config."""
    load_dotenv_if_exists(project_root)
    root = project_root or Path(__file__).resolve().parents[2]
    path = config_path or root / "config.yaml"
    data: Dict[str, Any] = {}
    if config_path is not None and not path.exists():
        raise ConfigError("file", str(path), "config file not found")
    if path.exists():
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError("file", str(path), f"invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("file", str(path), "top level must be a mapping")

    # Env overrides
    def env(key: str, default: Any = "") -> str:
        return os.getenv(key, "" if default is None else str(default)).strip()

    def env_bool(key: str, default: bool = False) -> bool:
        return os.getenv(key, str(default)).strip().lower() in ("true", "1", "yes")

    def env_float(key: str, section: str, name: str, default: Any) -> float:
        raw = os.getenv(key)
        value = default if raw is None else raw
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(section, name, f"not a number: {value!r}") from e

    backtest = data.get("backtest") or {}
    data_section = data.get("data") or {}
    logging_section = data.get("logging") or {}
    strategy = data.get("strategy") or {}

    config = Config(
        # Backtest
        start_date=_parse_date(backtest.get("start_date"), "start_date"),
        end_date=_parse_date(backtest.get("end_date"), "end_date"),
        initial_capital=env_float("INITIAL_CAPITAL", "backtest", "initial_capital", backtest.get("initial_capital", 100_000.0)),
        commission_per_trade=env_float("COMMISSION_PER_TRADE", "backtest", "commission_per_trade", backtest.get("commission_per_trade", 0.0)),
        commission_pct=env_float("COMMISSION_PCT", "backtest", "commission_pct", backtest.get("commission_pct", 0.0)),
        slippage_pct=env_float("SLIPPAGE_PCT", "backtest", "slippage_pct", backtest.get("slippage_pct", 0.0)),
        allow_shorting=env_bool("ALLOW_SHORTING", backtest.get("allow_shorting", False)),
        risk_free_rate=env_float("RISK_FREE_RATE", "backtest", "risk_free_rate", backtest.get("risk_free_rate", 0.0)),
        close_at_end=bool(backtest.get("close_at_end", False)),
        # Data
        csv_dir=Path(env("CSV_DIR", data_section.get("csv_dir", "data"))),
        exchange=env("EXCHANGE", data_section.get("exchange", "")).upper(),
        codes=_parse_codes(os.getenv("CODES") or data_section.get("codes")),
        # Strategy (rules are parsed on demand)
        strategy_section=dict(strategy),
        # Logging
        log_level=env("LOG_LEVEL", logging_section.get("level", "INFO")),
        log_dir=Path(logging_section.get("log_dir", "logs")),
        log_file=logging_section.get("log_file", "ruletrader.log"),
    )
    if not config.csv_dir.is_absolute():
        config.csv_dir = root / config.csv_dir
    config.validate()
    return config


class Config:
    """Unified configuration."""

    __slots__ = (
        "start_date", "end_date", "initial_capital", "commission_per_trade", "commission_pct",
        "slippage_pct", "allow_shorting", "risk_free_rate", "close_at_end",
        "csv_dir", "exchange", "codes",
        "strategy_section",
        "log_level", "log_dir", "log_file",
    )

    def __init__(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        initial_capital: float = 100_000.0,
        commission_per_trade: float = 0.0,
        commission_pct: float = 0.0,
        slippage_pct: float = 0.0,
        allow_shorting: bool = False,
        risk_free_rate: float = 0.0,
        close_at_end: bool = False,
        csv_dir: Path = None,
        exchange: str = "",
        codes: Optional[List[str]] = None,
        strategy_section: Optional[Dict[str, Any]] = None,
        log_level: str = "INFO",
        log_dir: Path = None,
        log_file: str = "ruletrader.log",
    ):
        self.start_date = start_date
        self.end_date = end_date
        self.initial_capital = initial_capital
        self.commission_per_trade = commission_per_trade
        self.commission_pct = commission_pct
        self.slippage_pct = slippage_pct
        self.allow_shorting = allow_shorting
        self.risk_free_rate = risk_free_rate
        self.close_at_end = close_at_end
        self.csv_dir = Path(csv_dir) if csv_dir else Path("data")
        self.exchange = exchange
        self.codes = list(codes or [])
        self.strategy_section = dict(strategy_section or {})
        self.log_level = log_level
        self.log_dir = Path(log_dir) if log_dir else Path("logs")
        self.log_file = log_file

    def validate(self) -> None:
        if self.initial_capital <= 0:
            raise ConfigError("backtest", "initial_capital", "initial_capital must be positive")
        if self.commission_per_trade < 0:
            raise ConfigError("backtest", "commission_per_trade", "commission_per_trade must be non-negative")
        if self.commission_pct < 0:
            raise ConfigError("backtest", "commission_pct", "commission_pct must be non-negative")
        if self.slippage_pct < 0:
            raise ConfigError("backtest", "slippage_pct", "slippage_pct must be non-negative")
        if not 0.0 <= self.risk_free_rate < 1.0:
            raise ConfigError("backtest", "risk_free_rate", "risk_free_rate must be between 0 and 1")
        if self.start_date and self.end_date and self.start_date >= self.end_date:
            raise ConfigError("backtest", "start_date", "start_date must be before end_date")

    def backtest_settings(self):
        """BacktestSettings for this configuration."""
        from ruletrader.backtesting.engine import BacktestSettings

        return BacktestSettings(
            initial_capital=self.initial_capital,
            commission_flat=self.commission_per_trade,
            commission_pct=self.commission_pct,
            slippage_pct=self.slippage_pct,
            allow_shorting=self.allow_shorting,
            risk_free_rate=self.risk_free_rate,
            close_at_end=self.close_at_end,
            start_date=self.start_date,
            end_date=self.end_date,
        )

    def strategy(self):
        """Parse the strategy section. Raises RuleParseError or ConfigError."""
        from ruletrader.strategies.strategy import load_strategy

        return load_strategy(self.strategy_section)
