"""
Error taxonomy. Every failure that aborts an operation is one of these and
carries enough context to be reported to the user.
"""

from __future__ import annotations
from typing import Optional


class RuletraderError(Exception):
    """Base class for all engine errors."""


class NullInputError(RuletraderError):
    """A required argument is missing."""

    def __init__(self, name: str):
        super().__init__(f"missing required input: {name}")
        self.name = name


class RuleParseError(RuletraderError):
    """Malformed rule text. position is a character offset into text."""

    def __init__(self, message: str, position: int, text: str = ""):
        self.message = message
        self.position = position
        self.text = text
        self.fragment = _fragment(text, position)
        super().__init__(f"parse error at position {position}: {message}")

    def format_error(self) -> str:
        """Rule text with a caret under the failing position."""
        caret = " " * self.position + "^"
        return f"{self.text}\n{caret}\n{self}"


class InvalidRuleError(RuletraderError):
    """Rule references an unknown indicator kind or has malformed arity."""


class NoDataError(RuletraderError):
    def __init__(self, code: str, exchange: str):
        super().__init__(f"no data for {code} on {exchange}")
        self.code = code
        self.exchange = exchange


class InsufficientDataError(RuletraderError):
    def __init__(self, code: str, exchange: str, bars: int, minimum: int):
        super().__init__(
            f"insufficient data for {code} on {exchange}: have {bars} bars, need {minimum}"
        )
        self.code = code
        self.exchange = exchange
        self.bars = bars
        self.minimum = minimum


class AllocationError(RuletraderError):
    """Resource exhaustion in the host environment during a run."""


class ConfigError(RuletraderError):
    def __init__(self, section: str, key: str, reason: str):
        super().__init__(f"invalid config value [{section}] {key}: {reason}")
        self.section = section
        self.key = key
        self.reason = reason


class BarSourceError(RuletraderError):
    """Connection or query failure in a bar source. Fatal for one instrument only."""

    def __init__(self, reason: str, code: Optional[str] = None):
        super().__init__(reason if code is None else f"{code}: {reason}")
        self.reason = reason
        self.code = code


def _fragment(text: str, position: int, width: int = 20) -> str:
    if not text:
        return ""
    position = max(0, min(position, len(text)))
    fragment = text[position:position + width].strip()
    return fragment or "end of input"
