"""Unit tests for backtesting.timeline."""

from datetime import date, timedelta

import pytest
from ruletrader.backtesting import CodeData, build_timeline, prepare_code_data
from ruletrader.core.errors import NoDataError
from ruletrader.core.types import Bar
from ruletrader.indicators import IndicatorKey, IndicatorKind


def bar(code, day, close):
    return Bar(code, "ASX", day, close - 1, close + 1, close - 2, close, 1000)


def test_code_data_date_index():
    d = date(2024, 1, 1)
    cd = CodeData("BHP", "ASX", [bar("BHP", d, 100), bar("BHP", d + timedelta(days=1), 101)])
    assert cd.bar_count == 2
    assert cd.index_of(d + timedelta(days=1)) == 1
    assert cd.bar_on(d).close == 100
    assert cd.bar_on(date(2030, 1, 1)) is None
    assert cd.index_of(date(2030, 1, 1)) is None


def test_build_timeline_union_sorted():
    d1, d2, d3, d4 = (date(2024, 1, i) for i in (1, 2, 3, 4))
    a = CodeData("A", "ASX", [bar("A", d1, 1), bar("A", d2, 2), bar("A", d3, 3)])
    b = CodeData("B", "ASX", [bar("B", d2, 1), bar("B", d4, 2)])
    assert build_timeline([b, a]) == [d1, d2, d3, d4]
    assert build_timeline([]) == []


def test_aligned_series_give_one_date_each():
    start = date(2024, 1, 1)
    days = [start + timedelta(days=i) for i in range(50)]
    a = CodeData("A", "ASX", [bar("A", d, 100 + i) for i, d in enumerate(days)])
    b = CodeData("B", "ASX", [bar("B", d, 50 + i) for i, d in enumerate(days)])
    assert build_timeline([a, b]) == days


def test_prepare_code_data_computes_indicators():
    start = date(2024, 1, 1)
    bars = [bar("BHP", start + timedelta(days=i), 100 + i) for i in range(10)]
    key = IndicatorKey(IndicatorKind.SMA, (3,))
    cd = prepare_code_data("BHP", "ASX", bars, [key])
    assert cd.indicators[key].value(2) == pytest.approx(101.0)
    assert len(cd.indicators[key]) == 10


def test_prepare_code_data_empty_raises():
    with pytest.raises(NoDataError):
        prepare_code_data("BHP", "ASX", [], [])
