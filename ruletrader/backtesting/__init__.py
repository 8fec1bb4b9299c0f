"""Backtesting: multi-code daily timeline simulation with costs."""

from ruletrader.backtesting.timeline import CodeData, build_timeline, prepare_code_data
from ruletrader.backtesting.engine import (
    BacktestEngine,
    BacktestResult,
    BacktestSettings,
    format_summary,
    run_backtest,
)

__all__ = [
    "CodeData",
    "build_timeline",
    "prepare_code_data",
    "BacktestEngine",
    "BacktestResult",
    "BacktestSettings",
    "format_summary",
    "run_backtest",
]
