"""
Strategy: entry/exit rule trees plus sizing and risk parameters.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from ruletrader.core.errors import ConfigError, RuleParseError
from ruletrader.indicators.series import IndicatorKey
from ruletrader.rules.ast import Rule, extract_indicators
from ruletrader.rules.parser import parse_rule

logger = logging.getLogger("ruletrader.strategy")


@dataclass(frozen=True)
class Strategy:
    """
    Immutable strategy definition. position_size is a fraction of cash in (0, 1];
    stop_loss_pct and take_profit_pct are percentages, 0 disables them.
    """
    name: str
    entry_long: Rule
    exit_long: Rule
    entry_short: Optional[Rule] = None
    exit_short: Optional[Rule] = None
    description: str = ""
    position_size: float = 0.25
    stop_loss_pct: float = 0.0
    take_profit_pct: float = 0.0
    max_positions: int = 1

    def __post_init__(self) -> None:
        if not 0.0 < self.position_size <= 1.0:
            raise ConfigError("strategy", "position_size", "position_size must be between 0 and 1")
        if self.stop_loss_pct < 0:
            raise ConfigError("strategy", "stop_loss", "stop_loss must be non-negative")
        if self.take_profit_pct < 0:
            raise ConfigError("strategy", "take_profit", "take_profit must be non-negative")
        if self.max_positions < 1:
            raise ConfigError("strategy", "max_positions", "max_positions must be at least 1")

    @property
    def can_short(self) -> bool:
        return self.entry_short is not None

    def rules(self) -> List[Rule]:
        return [
            r for r in (self.entry_long, self.exit_long, self.entry_short, self.exit_short)
            if r is not None
        ]


def required_indicators(strategy: Strategy) -> List[IndicatorKey]:
    """Distinct indicator keys referenced by any of the strategy's rules, first-seen order."""
    keys: dict = {}
    for rule in strategy.rules():
        for key in extract_indicators(rule):
            keys.setdefault(key, None)
    return list(keys)


def _parse_field(data: Mapping[str, Any], key: str, required: bool) -> Optional[Rule]:
    text = data.get(key)
    if text is None or not str(text).strip():
        if required:
            raise ConfigError("strategy", key, f"{key} rule is required")
        return None
    text = str(text)
    try:
        return parse_rule(text)
    except RuleParseError as e:
        logger.error("Failed to parse %s:\n%s", key, e.format_error())
        raise


def _number(data: Mapping[str, Any], key: str, default: float) -> float:
    value = data.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigError("strategy", key, f"not a number: {value!r}") from e


def load_strategy(data: Mapping[str, Any]) -> Strategy:
    """
    Build a Strategy from a config mapping (the `strategy` section of config.yaml).
    All-or-nothing: any malformed rule raises RuleParseError, bad parameters raise ConfigError.
    """
    entry_long = _parse_field(data, "entry_long", required=True)
    exit_long = _parse_field(data, "exit_long", required=True)
    entry_short = _parse_field(data, "entry_short", required=False)
    exit_short = _parse_field(data, "exit_short", required=False)
    max_positions = _number(data, "max_positions", 1)
    if not float(max_positions).is_integer():
        raise ConfigError("strategy", "max_positions", "max_positions must be an integer")
    return Strategy(
        name=str(data.get("name") or "Unnamed"),
        description=str(data.get("description") or ""),
        entry_long=entry_long,
        exit_long=exit_long,
        entry_short=entry_short,
        exit_short=exit_short,
        position_size=_number(data, "position_size", 0.25),
        stop_loss_pct=_number(data, "stop_loss", 0.0),
        take_profit_pct=_number(data, "take_profit", 0.0),
        max_positions=int(max_positions),
    )
