"""Abstract bar source: daily OHLCV history per instrument."""

from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from ruletrader.core.types import Bar


class BarSource(ABC):
    """
    Supplies chronologically ordered daily bars. An empty list means no data;
    a BarSourceError means the query itself failed.
    """

    @abstractmethod
    def fetch_bars(
        self,
        code: str,
        exchange: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Bar]:
        """Bars for code on exchange with start <= date <= end, ascending, unique dates."""
        pass

    @abstractmethod
    def list_symbols(self, exchange: str) -> List[str]:
        """Codes available on exchange, sorted."""
        pass
