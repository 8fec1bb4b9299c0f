"""
CSV bar source. One file per instrument: <base_dir>/<CODE>_<EXCHANGE>.csv with
header date,open,high,low,close,volume and ISO dates.
"""

from __future__ import annotations
import logging
from datetime import date
from pathlib import Path
from typing import List, Optional

import pandas as pd

from ruletrader.core.errors import BarSourceError
from ruletrader.core.types import Bar
from ruletrader.data.base import BarSource

logger = logging.getLogger("ruletrader.data")

COLUMNS = ["date", "open", "high", "low", "close", "volume"]


class CsvBarSource(BarSource):
    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def path_for(self, code: str, exchange: str) -> Path:
        return self.base_dir / f"{code}_{exchange}.csv"

    def load_frame(self, code: str, exchange: str) -> pd.DataFrame:
        """Whole file as a typed DataFrame sorted by date, duplicate dates dropped (first kept)."""
        path = self.path_for(code, exchange)
        if not path.exists():
            return pd.DataFrame(columns=COLUMNS)
        try:
            df = pd.read_csv(path)
        except (OSError, ValueError) as e:
            raise BarSourceError(f"failed to read {path}: {e}", code) from e

        df.columns = [str(c).strip().lower() for c in df.columns]
        missing = [c for c in COLUMNS if c not in df.columns]
        if missing:
            raise BarSourceError(f"{path.name} missing columns: {', '.join(missing)}", code)
        try:
            df["date"] = pd.to_datetime(df["date"], format="%Y-%m-%d").dt.date
            df[["open", "high", "low", "close"]] = df[["open", "high", "low", "close"]].astype(float)
            df["volume"] = df["volume"].astype("int64")
        except (TypeError, ValueError) as e:
            raise BarSourceError(f"invalid row in {path.name}: {e}", code) from e

        prices = df[["open", "high", "low", "close"]]
        blank = prices.isna().any(axis=1)
        if blank.any():
            row = int(blank.idxmax()) + 2
            raise BarSourceError(f"{path.name} line {row}: missing price value", code)

        df = df.sort_values("date", kind="mergesort").drop_duplicates("date", keep="first")
        return df.reset_index(drop=True)

    def fetch_bars(
        self,
        code: str,
        exchange: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Bar]:
        df = self.load_frame(code, exchange)
        if start is not None:
            df = df[df["date"] >= start]
        if end is not None:
            df = df[df["date"] <= end]
        bars = [
            Bar(
                code=code,
                exchange=exchange,
                date=row.date,
                open=float(row.open),
                high=float(row.high),
                low=float(row.low),
                close=float(row.close),
                volume=int(row.volume),
            )
            for row in df.itertuples(index=False)
        ]
        logger.debug("Loaded %d bars for %s.%s", len(bars), code, exchange)
        return bars

    def list_symbols(self, exchange: str) -> List[str]:
        if not self.base_dir.is_dir():
            raise BarSourceError(f"not a directory: {self.base_dir}")
        suffix = f"_{exchange}.csv"
        return sorted(
            p.name[: -len(suffix)]
            for p in self.base_dir.iterdir()
            if p.is_file() and p.name.endswith(suffix) and len(p.name) > len(suffix)
        )
