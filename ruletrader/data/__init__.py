"""Data: bar source interface, CSV and in-memory sources, universe validation."""

from ruletrader.data.base import BarSource
from ruletrader.data.csv_source import CsvBarSource
from ruletrader.data.memory import InMemoryBarSource
from ruletrader.data.universe import (
    MIN_BARS,
    SkippedCode,
    UniverseValidation,
    parse_codes,
    validate_universe,
)

__all__ = [
    "BarSource",
    "CsvBarSource",
    "InMemoryBarSource",
    "MIN_BARS",
    "SkippedCode",
    "UniverseValidation",
    "parse_codes",
    "validate_universe",
]
