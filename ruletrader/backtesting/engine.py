"""
Backtest engine: replays a unified daily timeline across instruments.

Per date: price snapshot -> stop/take triggers -> per-code exit or entry
(universe order) -> equity snapshot. Rules only see bars up to the current
date, fills happen at the current close with slippage and commission.
"""

from __future__ import annotations
import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from ruletrader.analytics.metrics import CodeMetrics, PerformanceMetrics, compute_metrics, compute_per_code
from ruletrader.backtesting.timeline import CodeData, build_timeline, prepare_code_data
from ruletrader.core.errors import AllocationError, NoDataError
from ruletrader.core.types import ClosedTrade, EquityPoint
from ruletrader.data.base import BarSource
from ruletrader.data.universe import MIN_BARS, SkippedCode, validate_universe
from ruletrader.portfolio.costs import ExecutionCosts
from ruletrader.portfolio.portfolio import Portfolio
from ruletrader.rules.evaluator import evaluate
from ruletrader.strategies.strategy import Strategy, required_indicators

logger = logging.getLogger("ruletrader.backtest")


@dataclass(frozen=True)
class BacktestSettings:
    """Run parameters. Commission and slippage percentages are in percent; risk_free_rate is annual."""
    initial_capital: float = 100_000.0
    commission_flat: float = 0.0
    commission_pct: float = 0.0
    slippage_pct: float = 0.0
    allow_shorting: bool = False
    risk_free_rate: float = 0.0
    close_at_end: bool = False
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.initial_capital) or self.initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")

    @property
    def costs(self) -> ExecutionCosts:
        return ExecutionCosts(self.commission_flat, self.commission_pct, self.slippage_pct)


@dataclass
class BacktestResult:
    """Backtest output: trades, daily equity, aggregate and per-code metrics."""
    strategy_name: str
    settings: BacktestSettings
    codes: List[str] = field(default_factory=list)
    exchange: str = ""
    trades: List[ClosedTrade] = field(default_factory=list)
    equity_curve: List[EquityPoint] = field(default_factory=list)
    metrics: Optional[PerformanceMetrics] = None
    code_results: List[CodeMetrics] = field(default_factory=list)
    skipped: List[SkippedCode] = field(default_factory=list)

    @property
    def final_equity(self) -> float:
        return self.equity_curve[-1].equity if self.equity_curve else self.settings.initial_capital

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-safe records: ISO dates, enum values, non-finite floats as None."""
        return _plain({
            "strategy": self.strategy_name,
            "exchange": self.exchange,
            "codes": list(self.codes),
            "settings": asdict(self.settings),
            "metrics": asdict(self.metrics) if self.metrics else None,
            "code_results": [asdict(c) for c in self.code_results],
            "trades": [
                dict(asdict(t), side=t.side, duration_days=t.duration_days) for t in self.trades
            ],
            "equity_curve": [asdict(p) for p in self.equity_curve],
            "skipped": [asdict(s) for s in self.skipped],
        })


def _plain(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


class BacktestEngine:
    """
    Runs one strategy over prepared CodeData. Each run owns a fresh Portfolio,
    so one engine can be reused and independent engines can run side by side.
    """

    def __init__(self, strategy: Strategy, settings: Optional[BacktestSettings] = None):
        self.strategy = strategy
        self.settings = settings or BacktestSettings()

    def run(self, code_data: Sequence[CodeData]) -> BacktestResult:
        if not code_data:
            raise NoDataError("<none>", "")
        codes = [cd.code for cd in code_data]
        if len(set(codes)) != len(codes):
            raise ValueError("duplicate code in universe")
        timeline = build_timeline(code_data)
        if not timeline:
            raise NoDataError(",".join(cd.code for cd in code_data), code_data[0].exchange)
        try:
            return self._run(code_data, timeline)
        except MemoryError as e:
            raise AllocationError("out of memory during backtest") from e

    def _run(self, code_data: Sequence[CodeData], timeline: List[date]) -> BacktestResult:
        strategy = self.strategy
        settings = self.settings
        costs = settings.costs
        portfolio = Portfolio(settings.initial_capital)
        codes = [cd.code for cd in code_data]
        exchange = code_data[0].exchange
        logger.info(
            "Backtest %s: %d codes, %d dates (%s to %s)",
            strategy.name, len(codes), len(timeline), timeline[0], timeline[-1],
        )

        for step, day in enumerate(timeline):
            prices: Dict[str, float] = {}
            for cd in code_data:
                bar = cd.bar_on(day)
                if bar is not None and math.isfinite(bar.close):
                    prices[cd.code] = bar.close

            for trade in portfolio.check_triggers(prices, day, costs):
                logger.debug("%s %s triggered at %.4f", trade.code, trade.exit_reason.value, trade.exit_price)

            for cd in code_data:
                i = cd.index_of(day)
                if i is None:
                    continue
                price = cd.bars[i].close
                position = portfolio.get_position(cd.code)
                if position is not None:
                    exit_rule = strategy.exit_long if position.is_long else strategy.exit_short
                    if exit_rule is not None and evaluate(exit_rule, cd.bars, cd.indicators, i):
                        portfolio.exit_position(cd.code, price, day, costs)
                    continue
                self._try_entry(portfolio, cd, i, day, price, costs)

            if settings.close_at_end and step == len(timeline) - 1:
                portfolio.close_all(prices, day, costs)

            portfolio.record_equity(day, portfolio.total_equity(prices))

        trades = list(portfolio.closed_trades)
        curve = list(portfolio.equity_curve)
        metrics = compute_metrics(trades, curve, settings.risk_free_rate, settings.initial_capital)
        result = BacktestResult(
            strategy_name=strategy.name,
            settings=settings,
            codes=codes,
            exchange=exchange,
            trades=trades,
            equity_curve=curve,
            metrics=metrics,
            code_results=compute_per_code(trades, codes, exchange),
        )
        logger.info(
            "Backtest %s finished: %d trades, final equity %.2f, %d open positions",
            strategy.name, len(trades), result.final_equity, portfolio.position_count,
        )
        return result

    def _try_entry(
        self,
        portfolio: Portfolio,
        cd: CodeData,
        index: int,
        day: date,
        price: float,
        costs: ExecutionCosts,
    ) -> None:
        strategy = self.strategy
        params = dict(
            position_size=strategy.position_size,
            stop_loss_pct=strategy.stop_loss_pct,
            take_profit_pct=strategy.take_profit_pct,
            max_positions=strategy.max_positions,
            costs=costs,
        )
        if evaluate(strategy.entry_long, cd.bars, cd.indicators, index):
            result = portfolio.enter_long(cd.code, cd.exchange, price, day, **params)
        elif (
            self.settings.allow_shorting
            and strategy.entry_short is not None
            and evaluate(strategy.entry_short, cd.bars, cd.indicators, index)
        ):
            result = portfolio.enter_short(cd.code, cd.exchange, price, day, **params)
        else:
            return
        if not result.entered:
            logger.debug("%s entry refused on %s: %s", cd.code, day, result.reason)


def run_backtest(
    source: BarSource,
    strategy: Strategy,
    settings: BacktestSettings,
    codes: Sequence[str],
    exchange: str,
    min_bars: int = MIN_BARS,
) -> BacktestResult:
    """Universe validation -> bars -> indicators -> simulation -> metrics."""
    validation = validate_universe(
        source, codes, exchange, settings.start_date, settings.end_date, min_bars=min_bars,
    )
    keys = required_indicators(strategy)
    code_data = [
        prepare_code_data(code, exchange, validation.bars[code], keys)
        for code in validation.codes
    ]
    result = BacktestEngine(strategy, settings).run(code_data)
    result.skipped = list(validation.skipped)
    return result


def format_summary(result: BacktestResult) -> str:
    """Console summary of a finished run."""
    m = result.metrics or PerformanceMetrics()
    lines = [
        "",
        "--- Backtest Results ---",
        f"Strategy: {result.strategy_name}",
        f"Universe: {', '.join(result.codes)} ({result.exchange})",
        f"Initial capital: {result.settings.initial_capital:.2f}",
        f"Final equity: {result.final_equity:.2f}",
        f"Total return: {m.total_return * 100:.2f}%",
        f"Annualized return: {m.annualized_return * 100:.2f}%",
        f"Sharpe ratio: {m.sharpe_ratio:.2f}",
        f"Sortino ratio: {m.sortino_ratio:.2f}",
        f"Max drawdown: {m.max_drawdown * 100:.2f}% ({m.max_drawdown_duration} days)",
        f"Total trades: {m.total_trades} (wins: {m.winning_trades}, losses: {m.losing_trades}, "
        f"breakeven: {m.breakeven_trades})",
        f"Win rate: {m.win_rate * 100:.1f}%",
        f"Profit factor: {m.profit_factor:.2f}",
        f"Expectancy: {m.expectancy:.2f}/trade",
        f"Avg trade duration: {m.avg_trade_duration:.1f} days",
    ]
    if len(result.code_results) > 1:
        lines.append("")
        lines.append("--- Per Code ---")
        for c in result.code_results:
            lines.append(
                f"{c.code}: trades {c.total_trades}, win rate {c.win_rate * 100:.1f}%, pnl {c.total_pnl:.2f}"
            )
    for s in result.skipped:
        lines.append(f"Skipped {s.code}: {s.reason}")
    return "\n".join(lines)
