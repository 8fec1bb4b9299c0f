"""Strategies: rule-based strategy definition and loading."""

from ruletrader.strategies.strategy import Strategy, load_strategy, required_indicators

__all__ = ["Strategy", "load_strategy", "required_indicators"]
