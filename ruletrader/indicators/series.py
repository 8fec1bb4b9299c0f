"""
Indicator identity and output series.

An IndicatorKey (kind + parameters) is the lookup key of a run's indicator
table. An IndicatorSeries holds one or more named fields aligned 1:1 with
the bar series; None marks an undefined slot.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class IndicatorKind(str, Enum):
    SMA = "SMA"
    EMA = "EMA"
    WMA = "WMA"
    RSI = "RSI"
    ROC = "ROC"
    ATR = "ATR"
    STDDEV = "STDDEV"
    OBV = "OBV"
    VWAP = "VWAP"
    MACD = "MACD"
    STOCHASTIC = "STOCHASTIC"
    BOLLINGER = "BOLLINGER"
    PIVOT = "PIVOT"


VALUE = "value"

# Output fields of multi-value indicators; everything else exposes VALUE only.
FIELDS: Dict[IndicatorKind, Tuple[str, ...]] = {
    IndicatorKind.MACD: ("line", "signal", "histogram"),
    IndicatorKind.STOCHASTIC: ("k", "d"),
    IndicatorKind.BOLLINGER: ("upper", "middle", "lower"),
    IndicatorKind.PIVOT: ("pivot", "r1", "r2", "r3", "s1", "s2", "s3"),
}


def fields_for(kind: IndicatorKind) -> Tuple[str, ...]:
    return FIELDS.get(kind, (VALUE,))


@dataclass(frozen=True)
class IndicatorKey:
    """Indicator kind plus parameters, e.g. IndicatorKey(IndicatorKind.SMA, (20,))."""
    kind: IndicatorKind
    params: Tuple[float, ...] = ()

    def __str__(self) -> str:
        if not self.params:
            return self.kind.value
        args = ",".join(_format_param(p) for p in self.params)
        return f"{self.kind.value}({args})"

    @property
    def period(self) -> int:
        return int(self.params[0]) if self.params else 0


def _format_param(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass
class IndicatorSeries:
    key: IndicatorKey
    values: Dict[str, List[Optional[float]]] = field(default_factory=dict)

    def __len__(self) -> int:
        first = next(iter(self.values.values()), [])
        return len(first)

    def value(self, index: int, field_name: str = VALUE) -> Optional[float]:
        """Value of field at index, None when undefined or out of range."""
        column = self.values.get(field_name)
        if column is None or index < 0 or index >= len(column):
            return None
        return column[index]

    def is_defined(self, index: int, field_name: str = VALUE) -> bool:
        return self.value(index, field_name) is not None

    def first_defined(self, field_name: str = VALUE) -> Optional[int]:
        """Index of the first defined slot (end of warm-up), or None."""
        for i, v in enumerate(self.values.get(field_name, [])):
            if v is not None:
                return i
        return None
