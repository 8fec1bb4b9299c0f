"""Unit tests for indicators."""

from datetime import date, timedelta

import pytest
from ruletrader.core.errors import InvalidRuleError
from ruletrader.core.types import Bar
from ruletrader.indicators import IndicatorKey, IndicatorKind, compute, compute_indicators


def make_bars(closes, highs=None, lows=None, volumes=None):
    start = date(2024, 1, 1)
    bars = []
    for i, c in enumerate(closes):
        bars.append(Bar(
            code="BHP",
            exchange="ASX",
            date=start + timedelta(days=i),
            open=c,
            high=highs[i] if highs else c,
            low=lows[i] if lows else c,
            close=c,
            volume=volumes[i] if volumes else 1000,
        ))
    return bars


def values(series, field="value"):
    return series.values[field]


def test_sma_warmup_and_values():
    s = compute(IndicatorKey(IndicatorKind.SMA, (3,)), make_bars([1, 2, 3, 4, 5]))
    assert len(s) == 5
    assert values(s)[:2] == [None, None]
    assert values(s)[2:] == pytest.approx([2.0, 3.0, 4.0])
    assert s.first_defined() == 2


def test_ema_seeded_with_sma():
    s = compute(IndicatorKey(IndicatorKind.EMA, (3,)), make_bars([1, 2, 3, 4, 5]))
    assert values(s)[:2] == [None, None]
    assert values(s)[2:] == pytest.approx([2.0, 3.0, 4.0])


def test_wma():
    s = compute(IndicatorKey(IndicatorKind.WMA, (3,)), make_bars([1, 2, 3, 4]))
    assert values(s)[2] == pytest.approx(14 / 6)
    assert values(s)[3] == pytest.approx(20 / 6)


def test_rsi_all_gains_is_100():
    s = compute(IndicatorKey(IndicatorKind.RSI, (3,)), make_bars([1, 2, 3, 4, 5, 6]))
    assert values(s)[:3] == [None, None, None]
    assert values(s)[3:] == pytest.approx([100.0, 100.0, 100.0])


def test_rsi_wilder_smoothing():
    s = compute(IndicatorKey(IndicatorKind.RSI, (2,)), make_bars([10, 11, 10, 11, 10]))
    # avg gain/loss: (0.5, 0.5) -> (0.75, 0.25) -> (0.375, 0.625)
    assert values(s)[2] == pytest.approx(50.0)
    assert values(s)[3] == pytest.approx(75.0)
    assert values(s)[4] == pytest.approx(37.5)


def test_rsi_in_range():
    closes = [100, 102, 101, 105, 103, 99, 98, 104, 107, 106, 103, 108]
    s = compute(IndicatorKey(IndicatorKind.RSI, (5,)), make_bars(closes))
    for v in values(s):
        assert v is None or 0.0 <= v <= 100.0


def test_roc_and_stddev():
    bars = make_bars([100, 110])
    assert values(compute(IndicatorKey(IndicatorKind.ROC, (1,)), bars))[1] == pytest.approx(10.0)
    assert values(compute(IndicatorKey(IndicatorKind.STDDEV, (2,)), make_bars([1, 3])))[1] == pytest.approx(1.0)


def test_obv():
    s = compute(IndicatorKey(IndicatorKind.OBV), make_bars([10, 11, 10, 10], volumes=[100, 200, 300, 400]))
    assert values(s) == pytest.approx([100.0, 300.0, 0.0, 0.0])


def test_vwap_cumulative():
    s = compute(IndicatorKey(IndicatorKind.VWAP), make_bars([10, 20], volumes=[1, 3]))
    assert values(s) == pytest.approx([10.0, 17.5])


def test_atr_wilder():
    bars = make_bars([9, 11, 14], highs=[10, 12, 15], lows=[8, 9, 11])
    s = compute(IndicatorKey(IndicatorKind.ATR, (2,)), bars)
    # true ranges 2, 3, 4
    assert values(s)[0] is None
    assert values(s)[1] == pytest.approx(2.5)
    assert values(s)[2] == pytest.approx(3.25)


def test_macd_fields():
    s = compute(IndicatorKey(IndicatorKind.MACD, (2, 3, 2)), make_bars([1, 2, 3, 4, 5, 6]))
    assert s.first_defined("line") == 2
    assert s.first_defined("signal") == 3
    assert values(s, "line")[2:] == pytest.approx([0.5, 0.5, 0.5, 0.5])
    assert values(s, "signal")[3:] == pytest.approx([0.5, 0.5, 0.5])
    assert values(s, "histogram")[2] is None
    assert values(s, "histogram")[3] == pytest.approx(0.0)


def test_bollinger():
    s = compute(IndicatorKey(IndicatorKind.BOLLINGER, (2, 2.0)), make_bars([1, 3]))
    assert s.value(1, "middle") == pytest.approx(2.0)
    assert s.value(1, "upper") == pytest.approx(4.0)
    assert s.value(1, "lower") == pytest.approx(0.0)
    assert s.value(0, "upper") is None


def test_stochastic():
    bars = make_bars([9, 11, 12], highs=[10, 12, 12], lows=[8, 8, 10])
    s = compute(IndicatorKey(IndicatorKind.STOCHASTIC, (2, 2)), bars)
    assert s.value(0, "k") is None
    assert s.value(1, "k") == pytest.approx(75.0)
    assert s.value(2, "k") == pytest.approx(100.0)
    assert s.value(1, "d") is None
    assert s.value(2, "d") == pytest.approx(87.5)


def test_stochastic_zero_range_undefined():
    s = compute(IndicatorKey(IndicatorKind.STOCHASTIC, (2, 1)), make_bars([10, 10, 10]))
    assert values(s, "k") == [None, None, None]
    assert values(s, "d") == [None, None, None]


def test_pivot_from_prior_bar():
    bars = make_bars([10, 11], highs=[12, 13], lows=[8, 9])
    s = compute(IndicatorKey(IndicatorKind.PIVOT), bars)
    assert s.value(0, "pivot") is None
    assert s.value(1, "pivot") == pytest.approx(10.0)
    assert s.value(1, "r1") == pytest.approx(12.0)
    assert s.value(1, "s1") == pytest.approx(8.0)
    assert s.value(1, "r2") == pytest.approx(14.0)
    assert s.value(1, "s2") == pytest.approx(6.0)
    assert s.value(1, "r3") == pytest.approx(16.0)
    assert s.value(1, "s3") == pytest.approx(4.0)


def test_invalid_period_raises():
    with pytest.raises(InvalidRuleError):
        compute(IndicatorKey(IndicatorKind.SMA, (0,)), make_bars([1, 2, 3]))
    with pytest.raises(InvalidRuleError):
        compute(IndicatorKey(IndicatorKind.MACD, (12, 26)), make_bars([1, 2, 3]))


def test_value_out_of_range_is_none():
    s = compute(IndicatorKey(IndicatorKind.SMA, (1,)), make_bars([1, 2]))
    assert s.value(5) is None
    assert s.value(-1) is None


def test_compute_indicators_dedupes():
    key = IndicatorKey(IndicatorKind.SMA, (2,))
    table = compute_indicators(make_bars([1, 2, 3]), [key, key, IndicatorKey(IndicatorKind.OBV)])
    assert len(table) == 2
    assert table[key].value(2) == pytest.approx(2.5)


def test_no_lookahead():
    closes = [100, 102, 101, 105, 103, 99, 98, 104, 107, 106, 103, 108, 110, 109, 111]
    full = make_bars(closes)
    keys = [
        IndicatorKey(IndicatorKind.EMA, (3,)),
        IndicatorKey(IndicatorKind.RSI, (4,)),
        IndicatorKey(IndicatorKind.MACD, (2, 4, 3)),
        IndicatorKey(IndicatorKind.STOCHASTIC, (3, 2)),
    ]
    for key in keys:
        whole = compute(key, full)
        part = compute(key, full[:9])
        for name, column in part.values.items():
            for a, b in zip(column, whole.values[name][:9]):
                if a is None or b is None:
                    assert a is None and b is None
                else:
                    assert a == pytest.approx(b)


def test_key_str():
    assert str(IndicatorKey(IndicatorKind.SMA, (20,))) == "SMA(20)"
    assert str(IndicatorKey(IndicatorKind.BOLLINGER, (20, 2.5))) == "BOLLINGER(20,2.5)"
    assert str(IndicatorKey(IndicatorKind.PIVOT)) == "PIVOT"
