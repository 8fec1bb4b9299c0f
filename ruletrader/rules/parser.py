"""
Recursive-descent parser for rule text.

    ABOVE(close, SMA(20))
    AND(CROSS_ABOVE(EMA(12), EMA(26)), BELOW(RSI(14), 70))
    CONSECUTIVE(ABOVE(close, BOLLINGER_UPPER(20, 2)), 3)

Keywords and indicator names are upper-case, price fields lower-case,
whitespace is ignored. Errors carry the character offset where parsing
stopped; nothing partial is ever returned.
"""

from __future__ import annotations
from typing import List, Optional

from ruletrader.core.errors import NullInputError, RuleParseError
from ruletrader.indicators.series import IndicatorKey
from ruletrader.rules.ast import (
    COMBINATORS,
    COMPARISONS,
    INDICATOR_OPERANDS,
    PRICE_FIELDS,
    TEMPORAL,
    Operand,
    Rule,
    RuleKind,
    between,
    negate,
)

_RULE_KEYWORDS = {kind.value: kind for kind in RuleKind}


class _Parser:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def error(self, message: str, position: Optional[int] = None) -> RuleParseError:
        return RuleParseError(message, self.pos if position is None else position, self.text)

    def skip_ws(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def peek(self) -> str:
        self.skip_ws()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def peek_word(self) -> str:
        self.skip_ws()
        end = self.pos
        while end < len(self.text) and (self.text[end].isalnum() or self.text[end] == "_"):
            end += 1
        return self.text[self.pos:end]

    def found(self) -> str:
        word = self.peek_word()
        if word:
            return word
        return self.peek() or "end of input"

    def expect(self, char: str) -> None:
        if self.peek() != char:
            raise self.error(f"expected '{char}', found '{self.found()}'")
        self.pos += 1

    def number(self) -> float:
        self.skip_ws()
        start = self.pos
        if self.pos < len(self.text) and self.text[self.pos] == "-":
            self.pos += 1
        digits = 0
        seen_dot = False
        while self.pos < len(self.text):
            ch = self.text[self.pos]
            if ch.isdigit():
                digits += 1
            elif ch == "." and not seen_dot:
                seen_dot = True
            else:
                break
            self.pos += 1
        if digits == 0:
            self.pos = start
            raise self.error(f"expected number, found '{self.found()}'")
        return float(self.text[start:self.pos])

    def integer(self, what: str = "integer") -> int:
        self.skip_ws()
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos].isdigit():
            self.pos += 1
        if self.pos == start:
            raise self.error(f"expected {what}, found '{self.found()}'")
        value = int(self.text[start:self.pos])
        if value < 1:
            raise self.error(f"{what} must be at least 1", start)
        return value

    # rule := keyword '(' ... ')'
    def rule(self) -> Rule:
        start = self.pos
        word = self.peek_word()
        kind = _RULE_KEYWORDS.get(word)
        if kind is None:
            raise self.error(f"expected rule, found '{self.found()}'")
        self.pos += len(word)
        self.expect("(")

        if kind in COMPARISONS:
            left = self.operand()
            self.expect(",")
            right = self.operand()
            self.expect(")")
            return Rule(kind, left=left, right=right)

        if kind == RuleKind.BETWEEN:
            operand = self.operand()
            self.expect(",")
            lower = self.number()
            self.expect(",")
            upper = self.number()
            self.expect(")")
            return between(operand, lower, upper)

        if kind in COMBINATORS:
            children: List[Rule] = [self.rule()]
            while self.peek() == ",":
                self.pos += 1
                children.append(self.rule())
            self.expect(")")
            if len(children) < 2:
                raise self.error(f"{kind.value} requires at least 2 rules", start)
            return Rule(kind, children=tuple(children))

        if kind == RuleKind.NOT:
            child = self.rule()
            self.expect(")")
            return negate(child)

        assert kind in TEMPORAL
        child = self.rule()
        self.expect(",")
        count = self.integer("count")
        self.expect(")")
        return Rule(kind, children=(child,), count=count)

    def operand(self) -> Operand:
        ch = self.peek()
        if ch and (ch.isdigit() or ch in "-."):
            return Operand.number(self.number())
        word = self.peek_word()
        if word in PRICE_FIELDS:
            self.pos += len(word)
            return Operand.price(word)
        operand_def = INDICATOR_OPERANDS.get(word)
        if operand_def is None:
            raise self.error(f"expected operand, found '{self.found()}'")
        self.pos += len(word)
        params: List[float] = []
        if operand_def.params:
            self.expect("(")
            for i, param_type in enumerate(operand_def.params):
                if i:
                    self.expect(",")
                if param_type == "int":
                    params.append(self.integer("period"))
                else:
                    params.append(self.number())
            self.expect(")")
        return Operand.of(IndicatorKey(operand_def.kind, tuple(params)), operand_def.field)

    def parse(self) -> Rule:
        result = self.rule()
        self.skip_ws()
        if self.pos < len(self.text):
            raise self.error(f"unexpected trailing input '{self.found()}'")
        return result


def parse_rule(text: str) -> Rule:
    """Compile rule text into a Rule tree. Raises RuleParseError on malformed input."""
    if text is None:
        raise NullInputError("rule text")
    if not text.strip():
        raise RuleParseError("empty rule", 0, text)
    parser = _Parser(text)
    try:
        return parser.parse()
    except RecursionError:
        raise parser.error("rule nested too deeply") from None
