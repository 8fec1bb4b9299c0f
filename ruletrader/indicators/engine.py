"""
Indicator dispatch: IndicatorKey -> IndicatorSeries.
"""

from __future__ import annotations
import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ruletrader.core.errors import InvalidRuleError
from ruletrader.core.types import Bar
from ruletrader.indicators import calculations as calc
from ruletrader.indicators.series import IndicatorKey, IndicatorKind, IndicatorSeries, fields_for

logger = logging.getLogger("ruletrader.indicators")

IndicatorTable = Dict[IndicatorKey, IndicatorSeries]

# Single-period kinds share one calling convention: fn(df, period).
_PERIOD_INDICATORS: Dict[IndicatorKind, Callable[[pd.DataFrame, int], calc.Columns]] = {
    IndicatorKind.SMA: calc.sma,
    IndicatorKind.EMA: calc.ema,
    IndicatorKind.WMA: calc.wma,
    IndicatorKind.RSI: calc.rsi,
    IndicatorKind.ROC: calc.roc,
    IndicatorKind.ATR: calc.atr,
    IndicatorKind.STDDEV: calc.stddev,
}

_PLAIN_INDICATORS: Dict[IndicatorKind, Callable[[pd.DataFrame], calc.Columns]] = {
    IndicatorKind.OBV: calc.obv,
    IndicatorKind.VWAP: calc.vwap,
    IndicatorKind.PIVOT: calc.pivot,
}


def _to_optional(values: pd.Series) -> List[Optional[float]]:
    arr = values.to_numpy(dtype=float)
    return [float(v) if math.isfinite(v) else None for v in arr]


def _int_param(key: IndicatorKey, i: int, name: str) -> int:
    if len(key.params) <= i:
        raise InvalidRuleError(f"{key.kind.value} requires parameter '{name}'")
    value = key.params[i]
    if float(value) != int(value) or int(value) < 1:
        raise InvalidRuleError(f"{key}: {name} must be a positive integer, got {value}")
    return int(value)


def _check_arity(key: IndicatorKey, expected: int) -> None:
    if len(key.params) != expected:
        raise InvalidRuleError(
            f"{key.kind.value} takes {expected} parameter(s), got {len(key.params)}"
        )


def compute_frame(key: IndicatorKey, df: pd.DataFrame) -> IndicatorSeries:
    """Compute one indicator over an OHLCV frame built by bars_to_frame."""
    try:
        kind = IndicatorKind(key.kind)
    except ValueError as e:
        raise InvalidRuleError(f"unknown indicator kind: {key.kind}") from e

    if kind == IndicatorKind.MACD:
        _check_arity(key, 3)
        columns = calc.macd(
            df,
            _int_param(key, 0, "fast"),
            _int_param(key, 1, "slow"),
            _int_param(key, 2, "signal"),
        )
    elif kind == IndicatorKind.STOCHASTIC:
        _check_arity(key, 2)
        columns = calc.stochastic(df, _int_param(key, 0, "k_period"), _int_param(key, 1, "d_period"))
    elif kind == IndicatorKind.BOLLINGER:
        _check_arity(key, 2)
        mult = float(key.params[1])
        if not np.isfinite(mult) or mult < 0:
            raise InvalidRuleError(f"{key}: stddev multiplier must be >= 0")
        columns = calc.bollinger(df, _int_param(key, 0, "period"), mult)
    elif kind in _PERIOD_INDICATORS:
        _check_arity(key, 1)
        columns = _PERIOD_INDICATORS[kind](df, _int_param(key, 0, "period"))
    elif kind in _PLAIN_INDICATORS:
        _check_arity(key, 0)
        columns = _PLAIN_INDICATORS[kind](df)
    else:
        raise InvalidRuleError(f"unsupported indicator kind: {kind.value}")

    return IndicatorSeries(
        key=key,
        values={name: _to_optional(columns[name]) for name in fields_for(kind)},
    )


def compute(key: IndicatorKey, bars: Sequence[Bar]) -> IndicatorSeries:
    """Pure function of (key, bars); one slot per bar, None before warm-up."""
    return compute_frame(key, calc.bars_to_frame(bars))


def compute_indicators(bars: Sequence[Bar], keys: Iterable[IndicatorKey]) -> IndicatorTable:
    """Compute every distinct key once over the same bar series."""
    df = calc.bars_to_frame(bars)
    table: IndicatorTable = {}
    for key in keys:
        if key in table:
            continue
        table[key] = compute_frame(key, df)
        logger.debug("Computed %s over %d bars", key, len(bars))
    return table
