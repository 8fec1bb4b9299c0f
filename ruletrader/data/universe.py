"""
Universe of instruments for a run: parse a code list, drop codes without
enough history.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Sequence

from ruletrader.core.errors import BarSourceError, InsufficientDataError, NoDataError
from ruletrader.core.types import Bar
from ruletrader.data.base import BarSource

logger = logging.getLogger("ruletrader.data")

MIN_BARS = 30


@dataclass
class SkippedCode:
    code: str
    reason: str
    bars: int = 0


@dataclass
class UniverseValidation:
    """Codes that passed (input order kept), the ones skipped, and the bars already fetched."""
    codes: List[str] = field(default_factory=list)
    skipped: List[SkippedCode] = field(default_factory=list)
    bars: Dict[str, List[Bar]] = field(default_factory=dict)


def parse_codes(text: str) -> List[str]:
    """'bhp, cba' -> ['BHP', 'CBA']. Empty tokens and duplicates raise ValueError."""
    codes: List[str] = []
    for token in text.split(","):
        code = token.strip().upper()
        if not code:
            raise ValueError("empty token in code list")
        if code in codes:
            raise ValueError(f"duplicate code: {code}")
        codes.append(code)
    return codes


def validate_universe(
    source: BarSource,
    codes: Sequence[str],
    exchange: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    min_bars: int = MIN_BARS,
) -> UniverseValidation:
    """
    Fetch each code and keep those with at least min_bars bars. A failing
    source query skips that code only. Raises NoDataError when codes is empty
    and InsufficientDataError when every code was skipped. A repeated code
    raises ValueError.
    """
    if not codes:
        raise NoDataError("<none>", exchange)
    seen = set()
    for code in codes:
        if code in seen:
            raise ValueError(f"duplicate code: {code}")
        seen.add(code)

    result = UniverseValidation()
    for code in codes:
        try:
            bars = source.fetch_bars(code, exchange, start, end)
        except BarSourceError as e:
            logger.warning("Skipping %s.%s (%s)", code, exchange, e)
            result.skipped.append(SkippedCode(code, "source_error"))
            continue
        if not bars:
            logger.warning("Skipping %s.%s (no data found)", code, exchange)
            result.skipped.append(SkippedCode(code, "no_data"))
            continue
        if len(bars) < min_bars:
            logger.warning(
                "Skipping %s.%s (only %d bars, minimum %d required)",
                code, exchange, len(bars), min_bars,
            )
            result.skipped.append(SkippedCode(code, "insufficient_bars", len(bars)))
            continue
        logger.info("%s.%s: %d bars [OK]", code, exchange, len(bars))
        result.codes.append(code)
        result.bars[code] = bars

    if not result.codes:
        most = max((s.bars for s in result.skipped), default=0)
        raise InsufficientDataError(",".join(codes), exchange, most, min_bars)
    return result
