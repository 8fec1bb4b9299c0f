"""Core: config, types, errors, logging."""

from ruletrader.core.config import load_config, Config
from ruletrader.core.types import Bar, Side, ExitReason, Position, ClosedTrade, EquityPoint
from ruletrader.core.errors import (
    RuletraderError,
    NullInputError,
    RuleParseError,
    InvalidRuleError,
    NoDataError,
    InsufficientDataError,
    AllocationError,
    ConfigError,
    BarSourceError,
)
from ruletrader.core.logger import setup_logging

__all__ = [
    "load_config",
    "Config",
    "Bar",
    "Side",
    "ExitReason",
    "Position",
    "ClosedTrade",
    "EquityPoint",
    "RuletraderError",
    "NullInputError",
    "RuleParseError",
    "InvalidRuleError",
    "NoDataError",
    "InsufficientDataError",
    "AllocationError",
    "ConfigError",
    "BarSourceError",
    "setup_logging",
]
