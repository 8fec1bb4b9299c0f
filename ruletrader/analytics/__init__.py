"""Analytics: performance metrics (Sharpe, Sortino, MDD, win rate, etc.)."""

from ruletrader.analytics.metrics import (
    CodeMetrics,
    PerformanceMetrics,
    TradeStats,
    compute_metrics,
    compute_per_code,
    sharpe_ratio,
    sortino_ratio,
    max_drawdown,
    max_drawdown_duration,
    win_rate,
    profit_factor,
    expectancy,
)

__all__ = [
    "CodeMetrics",
    "PerformanceMetrics",
    "TradeStats",
    "compute_metrics",
    "compute_per_code",
    "sharpe_ratio",
    "sortino_ratio",
    "max_drawdown",
    "max_drawdown_duration",
    "win_rate",
    "profit_factor",
    "expectancy",
]
