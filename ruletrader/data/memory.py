"""In-memory bar source for tests and parameter sweeps."""

from __future__ import annotations
from datetime import date
from typing import Dict, Iterable, List, Optional

from ruletrader.core.types import Bar
from ruletrader.data.base import BarSource


class InMemoryBarSource(BarSource):
    """Serves bars grouped by (code, exchange). Input order does not matter."""

    def __init__(self, bars: Iterable[Bar] = ()):
        self._bars: Dict[tuple, Dict[date, Bar]] = {}
        for bar in bars:
            self.add(bar)

    def add(self, bar: Bar) -> None:
        # Later bars for the same date replace earlier ones.
        self._bars.setdefault((bar.code, bar.exchange), {})[bar.date] = bar

    def fetch_bars(
        self,
        code: str,
        exchange: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Bar]:
        by_date = self._bars.get((code, exchange), {})
        return [
            by_date[d] for d in sorted(by_date)
            if (start is None or d >= start) and (end is None or d <= end)
        ]

    def list_symbols(self, exchange: str) -> List[str]:
        return sorted(code for code, ex in self._bars if ex == exchange)
