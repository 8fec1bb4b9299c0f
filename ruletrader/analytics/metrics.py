"""
Performance metrics: returns, Sharpe, Sortino, max drawdown and its duration,
win rate, profit factor, expectancy. Aggregate and per-code.
Daily returns are annualized with 252 trading days; calendar spans with 365 days.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ruletrader.core.types import ClosedTrade, EquityPoint

TRADING_DAYS_PER_YEAR = 252.0
CALENDAR_DAYS_PER_YEAR = 365.0


@dataclass
class TradeStats:
    """Trade-level statistics. Losses (avg_loss, largest_loss) are reported negative."""
    total_trades: int = 0
    winning_trades: int = 0
    losing_trades: int = 0
    breakeven_trades: int = 0
    win_rate: float = 0.0
    total_pnl: float = 0.0
    profit_factor: float = 0.0
    avg_win: float = 0.0
    avg_loss: float = 0.0
    largest_win: float = 0.0
    largest_loss: float = 0.0
    avg_trade_duration: float = 0.0
    expectancy: float = 0.0


@dataclass
class PerformanceMetrics(TradeStats):
    """Aggregate performance metrics. Returns and drawdown are fractions (0.15 = 15%)."""
    total_return: float = 0.0
    annualized_return: float = 0.0
    sharpe_ratio: float = 0.0
    sortino_ratio: float = 0.0
    max_drawdown: float = 0.0
    max_drawdown_duration: int = 0


@dataclass
class CodeMetrics(TradeStats):
    code: str = ""
    exchange: str = ""


def daily_returns(equity: Sequence[float]) -> List[float]:
    """Percentage change between consecutive equity values; 0 after a non-positive value."""
    arr = np.asarray(equity, dtype=float)
    if len(arr) < 2:
        return []
    prev = arr[:-1]
    safe_prev = np.where(prev > 0, prev, 1.0)
    return np.where(prev > 0, (arr[1:] - prev) / safe_prev, 0.0).tolist()


def sharpe_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = TRADING_DAYS_PER_YEAR) -> float:
    """Annualized Sharpe with population std. 0 when std is 0."""
    if not returns:
        return 0.0
    arr = np.array(returns, dtype=float)
    std = arr.std()
    if std <= 1e-12:
        return 0.0
    excess = arr.mean() - risk_free_rate / periods_per_year
    return float(np.sqrt(periods_per_year) * excess / std)


def sortino_ratio(returns: List[float], risk_free_rate: float = 0.0, periods_per_year: float = TRADING_DAYS_PER_YEAR) -> float:
    """Annualized Sortino: downside deviation sqrt(sum(min(r - rf, 0)^2) / n)."""
    if not returns:
        return 0.0
    arr = np.array(returns, dtype=float)
    rf = risk_free_rate / periods_per_year
    downside = np.minimum(arr - rf, 0.0)
    dd = np.sqrt((downside ** 2).sum() / len(arr))
    if dd <= 1e-12:
        return 0.0
    return float(np.sqrt(periods_per_year) * (arr.mean() - rf) / dd)


def max_drawdown(equity: Sequence[float]) -> float:
    """Largest peak-to-trough decline as a positive fraction."""
    if len(equity) == 0:
        return 0.0
    arr = np.asarray(equity, dtype=float)
    peak = np.maximum.accumulate(arr)
    dd = (peak - arr) / np.where(peak > 0, peak, 1.0)
    dd = np.where(peak > 0, dd, 0.0)
    return float(dd.max())


def max_drawdown_duration(curve: Sequence[EquityPoint]) -> int:
    """
    Longest time underwater in calendar days: from a peak to the first point
    back at or above it, or to the last point if it never recovers.
    """
    if not curve:
        return 0
    longest = 0
    peak = curve[0].equity
    peak_date = curve[0].date
    underwater = False
    for point in curve[1:]:
        if point.equity >= peak:
            if underwater:
                longest = max(longest, (point.date - peak_date).days)
            peak = point.equity
            peak_date = point.date
            underwater = False
        else:
            underwater = True
    if underwater:
        longest = max(longest, (curve[-1].date - peak_date).days)
    return longest


def win_rate(pnls: List[float]) -> float:
    """Fraction of trades with positive PnL."""
    if not pnls:
        return 0.0
    return sum(1 for p in pnls if p > 0) / len(pnls)


def profit_factor(pnls: List[float]) -> float:
    """Gross profit / gross loss. inf with wins and no losses, 0 without wins."""
    wins = sum(p for p in pnls if p > 0)
    losses = sum(-p for p in pnls if p < 0)
    if losses <= 0:
        return float("inf") if wins > 0 else 0.0
    return wins / losses


def expectancy(pnls: List[float]) -> float:
    """Average PnL per trade."""
    if not pnls:
        return 0.0
    return sum(pnls) / len(pnls)


def trade_stats(trades: Iterable[ClosedTrade]) -> TradeStats:
    trades = list(trades)
    if not trades:
        return TradeStats()
    pnls = [t.pnl for t in trades]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]
    return TradeStats(
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        breakeven_trades=len(pnls) - len(wins) - len(losses),
        win_rate=win_rate(pnls),
        total_pnl=sum(pnls),
        profit_factor=profit_factor(pnls),
        avg_win=sum(wins) / len(wins) if wins else 0.0,
        avg_loss=sum(losses) / len(losses) if losses else 0.0,
        largest_win=max(wins) if wins else 0.0,
        largest_loss=min(losses) if losses else 0.0,
        avg_trade_duration=sum(t.duration_days for t in trades) / len(trades),
        expectancy=expectancy(pnls),
    )


def _returns(curve: Sequence[EquityPoint], initial_capital: Optional[float]) -> Tuple[float, float]:
    start = initial_capital if initial_capital is not None else curve[0].equity
    if start <= 0:
        return 0.0, 0.0
    total = curve[-1].equity / start - 1.0
    span = (curve[-1].date - curve[0].date).days
    if span <= 0:
        return total, 0.0
    growth = 1.0 + total
    if growth <= 0:
        return total, -1.0
    return total, growth ** (CALENDAR_DAYS_PER_YEAR / span) - 1.0


def compute_metrics(
    trades: Sequence[ClosedTrade],
    equity_curve: Sequence[EquityPoint],
    risk_free_rate: float = 0.0,
    initial_capital: Optional[float] = None,
) -> PerformanceMetrics:
    """
    Full metrics from closed trades and the daily equity curve.
    initial_capital is the base of total_return; defaults to the first equity point.
    Empty inputs give all-zero metrics.
    """
    stats = trade_stats(trades)
    if not equity_curve:
        return PerformanceMetrics(**asdict(stats))
    total_return, annualized = _returns(equity_curve, initial_capital)
    equity = [p.equity for p in equity_curve]
    rets = daily_returns(equity)
    return PerformanceMetrics(
        total_return=total_return,
        annualized_return=annualized,
        sharpe_ratio=sharpe_ratio(rets, risk_free_rate),
        sortino_ratio=sortino_ratio(rets, risk_free_rate),
        max_drawdown=max_drawdown(equity),
        max_drawdown_duration=max_drawdown_duration(equity_curve),
        **asdict(stats),
    )


def compute_per_code(
    trades: Sequence[ClosedTrade],
    codes: Sequence[str],
    exchange: str,
) -> List[CodeMetrics]:
    """One CodeMetrics per code, in the given order. Trades for other codes are ignored."""
    by_code: Dict[str, List[ClosedTrade]] = {code: [] for code in codes}
    for trade in trades:
        if trade.code in by_code:
            by_code[trade.code].append(trade)
    return [
        CodeMetrics(code=code, exchange=exchange, **asdict(trade_stats(by_code[code])))
        for code in codes
    ]
