"""
Indicator formulas over an OHLCV DataFrame (columns: date, open, high, low,
close, volume). Each function returns a dict of field name -> pd.Series
aligned with the frame; NaN marks warm-up slots and is converted to None at
the series boundary. No lookahead: value i only reads rows <= i.
"""

from __future__ import annotations
from typing import Dict, Sequence

import numpy as np
import pandas as pd

from ruletrader.core.types import Bar
from ruletrader.indicators.series import VALUE

Columns = Dict[str, pd.Series]


def bars_to_frame(bars: Sequence[Bar]) -> pd.DataFrame:
    """OHLCV DataFrame with a 0..n-1 RangeIndex matching bar indices."""
    return pd.DataFrame(
        {
            "date": [b.date for b in bars],
            "open": [float(b.open) for b in bars],
            "high": [float(b.high) for b in bars],
            "low": [float(b.low) for b in bars],
            "close": [float(b.close) for b in bars],
            "volume": [float(b.volume) for b in bars],
        },
        columns=["date", "open", "high", "low", "close", "volume"],
    )


def _seeded_smoothing(values: pd.Series, period: int, alpha: float) -> pd.Series:
    """
    Recursive smoothing seeded with the simple mean of the first `period`
    defined values: out = x*alpha + out_prev*(1-alpha). Leading NaNs stay NaN.
    Assumes defined values are contiguous once they start.
    """
    out = pd.Series(np.nan, index=values.index, dtype=float)
    defined = values.dropna()
    if period < 1 or len(defined) < period:
        return out
    seed_label = defined.index[period - 1]
    seed_pos = values.index.get_loc(seed_label)
    seeded = values.astype(float).copy()
    seeded.iloc[:seed_pos] = np.nan
    seeded.iloc[seed_pos] = defined.iloc[:period].mean()
    return seeded.ewm(alpha=alpha, adjust=False).mean()


def _ema(values: pd.Series, period: int) -> pd.Series:
    return _seeded_smoothing(values, period, 2.0 / (period + 1.0))


def _wilder(values: pd.Series, period: int) -> pd.Series:
    return _seeded_smoothing(values, period, 1.0 / period)


def sma(df: pd.DataFrame, period: int) -> Columns:
    return {VALUE: df["close"].rolling(period).mean()}


def ema(df: pd.DataFrame, period: int) -> Columns:
    return {VALUE: _ema(df["close"], period)}


def wma(df: pd.DataFrame, period: int) -> Columns:
    weights = np.arange(1, period + 1, dtype=float)
    total = weights.sum()
    return {
        VALUE: df["close"].rolling(period).apply(lambda w: float(np.dot(w, weights) / total), raw=True)
    }


def rsi(df: pd.DataFrame, period: int) -> Columns:
    """Wilder RSI; first value at index `period`. 100 when there are no losses."""
    delta = df["close"].diff()
    avg_gain = _wilder(delta.clip(lower=0), period)
    avg_loss = _wilder((-delta).clip(lower=0), period)
    rs = avg_gain / avg_loss.replace(0, np.nan)
    out = 100.0 - 100.0 / (1.0 + rs)
    out = out.where(avg_loss != 0, 100.0)
    return {VALUE: out.where(avg_gain.notna())}


def roc(df: pd.DataFrame, period: int) -> Columns:
    prev = df["close"].shift(period)
    return {VALUE: (df["close"] - prev) / prev.replace(0, np.nan) * 100.0}


def atr(df: pd.DataFrame, period: int) -> Columns:
    """Wilder-smoothed true range seeded by the mean of the first `period` ranges."""
    prev_close = df["close"].shift()
    tr = pd.concat(
        [df["high"] - df["low"], (df["high"] - prev_close).abs(), (df["low"] - prev_close).abs()],
        axis=1,
    ).max(axis=1)
    return {VALUE: _wilder(tr, period)}


def stddev(df: pd.DataFrame, period: int) -> Columns:
    return {VALUE: df["close"].rolling(period).std(ddof=0)}


def obv(df: pd.DataFrame) -> Columns:
    if df.empty:
        return {VALUE: pd.Series(dtype=float)}
    direction = np.sign(df["close"].diff()).fillna(0.0)
    flow = direction * df["volume"]
    return {VALUE: df["volume"].iloc[0] + flow.cumsum()}


def vwap(df: pd.DataFrame) -> Columns:
    """Cumulative VWAP over the whole series using the typical price."""
    typical = (df["high"] + df["low"] + df["close"]) / 3.0
    cum_pv = (typical * df["volume"]).cumsum()
    cum_vol = df["volume"].cumsum()
    return {VALUE: cum_pv / cum_vol.replace(0, np.nan)}


def macd(df: pd.DataFrame, fast: int, slow: int, signal: int) -> Columns:
    """Line defined from the slow EMA seed; signal is an EMA of the line."""
    line = _ema(df["close"], fast) - _ema(df["close"], slow)
    signal_line = _ema(line, signal)
    return {
        "line": line,
        "signal": signal_line,
        "histogram": line - signal_line,
    }


def bollinger(df: pd.DataFrame, period: int, mult: float) -> Columns:
    middle = df["close"].rolling(period).mean()
    width = df["close"].rolling(period).std(ddof=0) * mult
    return {"upper": middle + width, "middle": middle, "lower": middle - width}


def stochastic(df: pd.DataFrame, k_period: int, d_period: int) -> Columns:
    """%K over the trailing high/low range; a zero range leaves %K undefined."""
    lowest = df["low"].rolling(k_period).min()
    highest = df["high"].rolling(k_period).max()
    k = 100.0 * (df["close"] - lowest) / (highest - lowest).replace(0, np.nan)
    return {"k": k, "d": k.rolling(d_period).mean()}


def pivot(df: pd.DataFrame) -> Columns:
    """Classic floor pivots from the prior bar; undefined on the first bar."""
    h = df["high"].shift()
    l = df["low"].shift()
    c = df["close"].shift()
    p = (h + l + c) / 3.0
    return {
        "pivot": p,
        "r1": 2.0 * p - l,
        "r2": p + (h - l),
        "r3": h + 2.0 * (p - l),
        "s1": 2.0 * p - h,
        "s2": p - (h - l),
        "s3": l - 2.0 * (h - p),
    }
