"""Indicators: keys, aligned series, pandas calculations and dispatch."""

from ruletrader.indicators.series import (
    IndicatorKind,
    IndicatorKey,
    IndicatorSeries,
    VALUE,
    fields_for,
)
from ruletrader.indicators.engine import IndicatorTable, compute, compute_indicators

__all__ = [
    "IndicatorKind",
    "IndicatorKey",
    "IndicatorSeries",
    "IndicatorTable",
    "VALUE",
    "fields_for",
    "compute",
    "compute_indicators",
]
