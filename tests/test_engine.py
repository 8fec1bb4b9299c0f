"""End-to-end tests for backtesting.engine."""

import json
import math
from datetime import date, timedelta

import pytest
from ruletrader.backtesting import (
    BacktestEngine,
    BacktestSettings,
    format_summary,
    prepare_code_data,
    run_backtest,
)
from ruletrader.core.errors import InsufficientDataError, NoDataError
from ruletrader.core.types import Bar, ExitReason
from ruletrader.data import InMemoryBarSource
from ruletrader.rules import parse_rule
from ruletrader.strategies import Strategy, required_indicators

START = date(2024, 1, 1)


def make_bars(code, closes, start=START):
    return [
        Bar(code, "ASX", start + timedelta(days=i), c, c * 1.01, c * 0.99, c, 10_000)
        for i, c in enumerate(closes)
    ]


def zigzag(n=50, leg=10, base=100.0):
    """Up `leg` bars, down `leg` bars, repeated."""
    closes = []
    level = base
    for i in range(n):
        closes.append(level)
        level += 1.0 if (i // leg) % 2 == 0 else -1.0
    return closes


def strategy(entry_long, exit_long, **kwargs):
    params = dict(name="Test", position_size=0.5)
    params.update(kwargs)
    for key in ("entry_short", "exit_short"):
        if isinstance(params.get(key), str):
            params[key] = parse_rule(params[key])
    return Strategy(entry_long=parse_rule(entry_long), exit_long=parse_rule(exit_long), **params)


def run(strat, series, settings=None):
    keys = required_indicators(strat)
    data = [prepare_code_data(code, "ASX", bars, keys) for code, bars in series.items()]
    return BacktestEngine(strat, settings or BacktestSettings()).run(data)


def test_sma_crossover_scenario():
    strat = strategy("CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))", name="SMA Crossover")
    result = run(strat, {"BHP": make_bars("BHP", zigzag())})
    assert result.strategy_name == "SMA Crossover"
    assert len(result.trades) >= 1
    assert len(result.equity_curve) == 50
    assert all(t.exit_reason == ExitReason.SIGNAL for t in result.trades)
    assert result.metrics.total_trades == len(result.trades)


def test_stop_loss_and_take_profit_scenario():
    closes = [float(c) for c in range(100, 115)] + [float(c) for c in range(113, 74, -1)]
    strat = strategy(
        "ABOVE(close, 0)", "BELOW(close, 0)",
        stop_loss_pct=5.0, take_profit_pct=10.0,
    )
    result = run(strat, {"BHP": make_bars("BHP", closes)})
    takes = [t for t in result.trades if t.exit_reason == ExitReason.TAKE_PROFIT]
    stops = [t for t in result.trades if t.exit_reason == ExitReason.STOP_LOSS]
    assert takes and all(t.pnl > 0 for t in takes)
    assert stops and all(t.pnl < 0 for t in stops)
    first = result.trades[0]
    assert first.exit_reason == ExitReason.TAKE_PROFIT
    assert first.entry_price == pytest.approx(100.0)
    assert 110.0 <= first.exit_price <= 111.0


def test_two_aligned_instruments():
    strat = strategy("CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))", max_positions=2)
    result = run(strat, {
        "BHP": make_bars("BHP", zigzag()),
        "CBA": make_bars("CBA", zigzag(base=50.0)),
    })
    assert len(result.equity_curve) == 50
    assert [e.date for e in result.equity_curve] == [START + timedelta(days=i) for i in range(50)]
    assert [c.code for c in result.code_results] == ["BHP", "CBA"]


def test_deterministic():
    strat = strategy(
        "CROSS_ABOVE(EMA(3), SMA(5))", "CROSS_BELOW(EMA(3), SMA(5))",
        stop_loss_pct=2.0, take_profit_pct=4.0,
    )
    settings = BacktestSettings(commission_pct=0.1, slippage_pct=0.05)
    series = {"BHP": make_bars("BHP", zigzag(60, 7))}
    assert run(strat, series, settings).to_dict() == run(strat, series, settings).to_dict()


def test_no_lookahead():
    strat = strategy("CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))")
    bars = make_bars("BHP", zigzag(50, 6))
    full = run(strat, {"BHP": bars})
    part = run(strat, {"BHP": bars[:30]})
    assert full.equity_curve[:30] == part.equity_curve
    cutoff = bars[29].date
    assert [t for t in full.trades if t.exit_date <= cutoff] == part.trades


def test_costs_reduce_final_equity():
    closes = [100.0 + i for i in range(50)]
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)")
    finals = []
    for pct, slip in ((0.0, 0.0), (0.1, 0.1), (0.5, 0.5)):
        settings = BacktestSettings(commission_pct=pct, slippage_pct=slip, close_at_end=True)
        finals.append(run(strat, {"BHP": make_bars("BHP", closes)}, settings).final_equity)
    assert finals[0] > finals[1] > finals[2]


def test_max_positions_respected_in_universe_order():
    closes = [100.0 + i for i in range(40)]
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)", position_size=0.2, max_positions=2)
    result = run(
        strat,
        {code: make_bars(code, closes) for code in ("AAA", "BBB", "CCC")},
        BacktestSettings(close_at_end=True),
    )
    assert sorted(t.code for t in result.trades) == ["AAA", "BBB"]
    assert all(t.exit_reason == ExitReason.END_OF_DATA for t in result.trades)


def test_per_code_consistency():
    strat = strategy(
        "CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))",
        position_size=0.3, max_positions=3,
    )
    result = run(strat, {
        "BHP": make_bars("BHP", zigzag(60, 5)),
        "CBA": make_bars("CBA", zigzag(60, 8, 70.0)),
        "WES": make_bars("WES", zigzag(60, 4, 40.0)),
    })
    assert sum(c.total_trades for c in result.code_results) == result.metrics.total_trades
    assert sum(c.total_pnl for c in result.code_results) == pytest.approx(result.metrics.total_pnl)


def test_short_take_profit():
    closes = [100.0 - i for i in range(30)]
    strat = strategy(
        "BELOW(close, 0)", "BELOW(close, 0)",
        entry_short="ABOVE(close, 0)",
        take_profit_pct=10.0,
    )
    shorted = run(strat, {"BHP": make_bars("BHP", closes)}, BacktestSettings(allow_shorting=True))
    first = shorted.trades[0]
    assert first.quantity < 0
    assert first.exit_reason == ExitReason.TAKE_PROFIT
    assert first.pnl > 0
    assert run(strat, {"BHP": make_bars("BHP", closes)}).trades == []


def test_missing_dates_keep_position_marked():
    a = make_bars("AAA", [100.0 + i for i in range(10)])
    b = [bar for i, bar in enumerate(make_bars("BBB", [50.0] * 10)) if i % 2 == 0]
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)", max_positions=2)
    result = run(strat, {"AAA": a, "BBB": b})
    assert len(result.equity_curve) == 10
    # BBB is flat at 50 and marked at its last close on its missing dates
    assert all(p.equity > 0 for p in result.equity_curve)


def test_empty_universe_raises():
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)")
    with pytest.raises(NoDataError):
        BacktestEngine(strat).run([])


def test_run_backtest_skips_short_histories():
    source = InMemoryBarSource(make_bars("BHP", zigzag(50)) + make_bars("CBA", zigzag(10)))
    strat = strategy("CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))")
    result = run_backtest(source, strat, BacktestSettings(), ["BHP", "CBA", "XXX"], "ASX")
    assert result.codes == ["BHP"]
    assert [(s.code, s.reason) for s in result.skipped] == [
        ("CBA", "insufficient_bars"),
        ("XXX", "no_data"),
    ]
    assert "Skipped CBA" in format_summary(result)


def test_run_backtest_all_skipped_raises():
    source = InMemoryBarSource(make_bars("CBA", zigzag(10)))
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)")
    with pytest.raises(InsufficientDataError):
        run_backtest(source, strat, BacktestSettings(), ["CBA"], "ASX")


def test_result_to_dict_is_json_safe():
    closes = [100.0 + i for i in range(40)]
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)")
    result = run(strat, {"BHP": make_bars("BHP", closes)}, BacktestSettings(close_at_end=True))
    data = result.to_dict()
    text = json.dumps(data, allow_nan=False)
    assert '"end_of_data"' in text
    assert data["metrics"]["profit_factor"] is None  # inf with no losses
    assert data["equity_curve"][0]["date"] == "2024-01-01"
    assert data["trades"][0]["side"] == "long"


def test_decline_rise_decline_rise_crossover():
    closes = []
    level = 100.0
    for length, step in ((12, -1.0), (13, 1.0), (13, -1.0), (12, 1.0)):
        for _ in range(length):
            level += step
            closes.append(level)
    assert len(closes) == 50
    strat = strategy("CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))", name="SMA Crossover")
    result = run(strat, {"BHP": make_bars("BHP", closes)})
    assert len(result.trades) >= 1
    assert result.strategy_name == "SMA Crossover"
    assert len(result.equity_curve) == 50


def test_run_backtest_rejects_duplicate_codes():
    source = InMemoryBarSource(make_bars("BHP", zigzag(50)))
    strat = strategy("CROSS_ABOVE(SMA(3), SMA(5))", "CROSS_BELOW(SMA(3), SMA(5))")
    with pytest.raises(ValueError):
        run_backtest(source, strat, BacktestSettings(), ["BHP", "BHP"], "ASX")
    data = prepare_code_data("BHP", "ASX", make_bars("BHP", zigzag(50)), required_indicators(strat))
    with pytest.raises(ValueError):
        BacktestEngine(strat).run([data, data])


def test_non_finite_close_keeps_equity_finite():
    bars = make_bars("BHP", [100.0 + i for i in range(40)])
    gap = bars[20]
    bars[20] = Bar(gap.code, gap.exchange, gap.date, gap.open, gap.high, gap.low, float("nan"), gap.volume)
    strat = strategy("ABOVE(close, 0)", "BELOW(close, 0)")
    result = run(strat, {"BHP": bars})
    equity = [p.equity for p in result.equity_curve]
    assert all(math.isfinite(e) for e in equity)
    assert equity[20] == pytest.approx(equity[19])
    assert math.isfinite(result.metrics.sharpe_ratio)
