"""
Per-instrument run data and the unified date timeline across instruments.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

from ruletrader.core.errors import NoDataError
from ruletrader.core.types import Bar
from ruletrader.indicators.engine import IndicatorTable, compute_indicators
from ruletrader.indicators.series import IndicatorKey


@dataclass
class CodeData:
    """Bars of one instrument, its indicator table and a date -> bar index lookup."""
    code: str
    exchange: str
    bars: List[Bar]
    indicators: IndicatorTable = field(default_factory=dict)
    date_index: Dict[date, int] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.date_index = {bar.date: i for i, bar in enumerate(self.bars)}

    @property
    def bar_count(self) -> int:
        return len(self.bars)

    def index_of(self, day: date) -> Optional[int]:
        return self.date_index.get(day)

    def bar_on(self, day: date) -> Optional[Bar]:
        i = self.date_index.get(day)
        return None if i is None else self.bars[i]

    def attach_indicators(self, keys: Iterable[IndicatorKey]) -> None:
        """Compute any key not already present."""
        missing = [k for k in keys if k not in self.indicators]
        if missing:
            self.indicators.update(compute_indicators(self.bars, missing))


def prepare_code_data(
    code: str,
    exchange: str,
    bars: Sequence[Bar],
    keys: Iterable[IndicatorKey],
) -> CodeData:
    """CodeData with every indicator in keys computed. Raises NoDataError on an empty series."""
    if not bars:
        raise NoDataError(code, exchange)
    data = CodeData(code, exchange, list(bars))
    data.attach_indicators(keys)
    return data


def build_timeline(code_data: Sequence[CodeData]) -> List[date]:
    """Sorted union of every date on which at least one instrument has a bar."""
    return sorted({bar.date for data in code_data for bar in data.bars})
