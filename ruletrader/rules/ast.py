"""
Rule tree: immutable nodes tagged by RuleKind.

Leaves compare operands (price field, constant, indicator field); combinators
hold child rules. A tree is built once by the parser and shared read-only.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple

from ruletrader.indicators.series import VALUE, IndicatorKey, IndicatorKind


class OperandKind(str, Enum):
    PRICE = "price"
    CONSTANT = "constant"
    INDICATOR = "indicator"


PRICE_FIELDS = ("open", "high", "low", "close", "volume")


class RuleKind(str, Enum):
    ABOVE = "ABOVE"
    BELOW = "BELOW"
    EQUALS = "EQUALS"
    CROSS_ABOVE = "CROSS_ABOVE"
    CROSS_BELOW = "CROSS_BELOW"
    BETWEEN = "BETWEEN"
    AND = "AND"
    OR = "OR"
    NOT = "NOT"
    CONSECUTIVE = "CONSECUTIVE"
    ANY_OF = "ANY_OF"


COMPARISONS = (
    RuleKind.ABOVE,
    RuleKind.BELOW,
    RuleKind.EQUALS,
    RuleKind.CROSS_ABOVE,
    RuleKind.CROSS_BELOW,
)
COMBINATORS = (RuleKind.AND, RuleKind.OR)
TEMPORAL = (RuleKind.CONSECUTIVE, RuleKind.ANY_OF)


@dataclass(frozen=True)
class IndicatorOperand:
    """How an indicator name in rule text maps to a key kind, field and parameter types."""
    kind: IndicatorKind
    field: str
    params: Tuple[str, ...] = ()  # "int" or "number" per parameter


INDICATOR_OPERANDS: Dict[str, IndicatorOperand] = {
    "SMA": IndicatorOperand(IndicatorKind.SMA, VALUE, ("int",)),
    "EMA": IndicatorOperand(IndicatorKind.EMA, VALUE, ("int",)),
    "WMA": IndicatorOperand(IndicatorKind.WMA, VALUE, ("int",)),
    "RSI": IndicatorOperand(IndicatorKind.RSI, VALUE, ("int",)),
    "ROC": IndicatorOperand(IndicatorKind.ROC, VALUE, ("int",)),
    "ATR": IndicatorOperand(IndicatorKind.ATR, VALUE, ("int",)),
    "STDDEV": IndicatorOperand(IndicatorKind.STDDEV, VALUE, ("int",)),
    "OBV": IndicatorOperand(IndicatorKind.OBV, VALUE),
    "VWAP": IndicatorOperand(IndicatorKind.VWAP, VALUE),
    "MACD_LINE": IndicatorOperand(IndicatorKind.MACD, "line", ("int", "int", "int")),
    "MACD_SIGNAL": IndicatorOperand(IndicatorKind.MACD, "signal", ("int", "int", "int")),
    "MACD_HISTOGRAM": IndicatorOperand(IndicatorKind.MACD, "histogram", ("int", "int", "int")),
    "STOCHASTIC_K": IndicatorOperand(IndicatorKind.STOCHASTIC, "k", ("int", "int")),
    "STOCHASTIC_D": IndicatorOperand(IndicatorKind.STOCHASTIC, "d", ("int", "int")),
    "BOLLINGER_UPPER": IndicatorOperand(IndicatorKind.BOLLINGER, "upper", ("int", "number")),
    "BOLLINGER_MIDDLE": IndicatorOperand(IndicatorKind.BOLLINGER, "middle", ("int", "number")),
    "BOLLINGER_LOWER": IndicatorOperand(IndicatorKind.BOLLINGER, "lower", ("int", "number")),
    "PIVOT": IndicatorOperand(IndicatorKind.PIVOT, "pivot"),
    "PIVOT_R1": IndicatorOperand(IndicatorKind.PIVOT, "r1"),
    "PIVOT_R2": IndicatorOperand(IndicatorKind.PIVOT, "r2"),
    "PIVOT_R3": IndicatorOperand(IndicatorKind.PIVOT, "r3"),
    "PIVOT_S1": IndicatorOperand(IndicatorKind.PIVOT, "s1"),
    "PIVOT_S2": IndicatorOperand(IndicatorKind.PIVOT, "s2"),
    "PIVOT_S3": IndicatorOperand(IndicatorKind.PIVOT, "s3"),
}

_OPERAND_NAMES: Dict[Tuple[IndicatorKind, str], str] = {
    (entry.kind, entry.field): name for name, entry in INDICATOR_OPERANDS.items()
}


def format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


@dataclass(frozen=True)
class Operand:
    kind: OperandKind
    price_field: str = ""
    constant: float = 0.0
    indicator: Optional[IndicatorKey] = None
    field: str = VALUE

    @classmethod
    def price(cls, name: str) -> "Operand":
        if name not in PRICE_FIELDS:
            raise ValueError(f"unknown price field: {name}")
        return cls(OperandKind.PRICE, price_field=name)

    @classmethod
    def number(cls, value: float) -> "Operand":
        return cls(OperandKind.CONSTANT, constant=float(value))

    @classmethod
    def of(cls, key: IndicatorKey, field: str = VALUE) -> "Operand":
        return cls(OperandKind.INDICATOR, indicator=key, field=field)

    def __str__(self) -> str:
        if self.kind == OperandKind.PRICE:
            return self.price_field
        if self.kind == OperandKind.CONSTANT:
            return format_number(self.constant)
        key = self.indicator
        name = _OPERAND_NAMES.get((key.kind, self.field), key.kind.value)
        if not key.params:
            return name
        return f"{name}({','.join(format_number(p) for p in key.params)})"


@dataclass(frozen=True)
class Rule:
    """
    One node of a rule tree. Which fields are meaningful depends on kind:
    comparisons use left/right, BETWEEN uses left/lower/upper, AND/OR use
    children, NOT uses children[0], CONSECUTIVE/ANY_OF use children[0] and count.
    """
    kind: RuleKind
    left: Optional[Operand] = None
    right: Optional[Operand] = None
    lower: float = 0.0
    upper: float = 0.0
    children: Tuple["Rule", ...] = ()
    count: int = 0

    @property
    def child(self) -> "Rule":
        return self.children[0]

    def __str__(self) -> str:
        return rule_to_text(self)


def compare(kind: RuleKind, left: Operand, right: Operand) -> Rule:
    if kind not in COMPARISONS:
        raise ValueError(f"{kind} is not a comparison")
    return Rule(kind, left=left, right=right)


def between(operand: Operand, lower: float, upper: float) -> Rule:
    return Rule(RuleKind.BETWEEN, left=operand, lower=float(lower), upper=float(upper))


def all_of(*children: Rule) -> Rule:
    return Rule(RuleKind.AND, children=tuple(children))


def any_rule(*children: Rule) -> Rule:
    return Rule(RuleKind.OR, children=tuple(children))


def negate(child: Rule) -> Rule:
    return Rule(RuleKind.NOT, children=(child,))


def consecutive(child: Rule, count: int) -> Rule:
    return Rule(RuleKind.CONSECUTIVE, children=(child,), count=int(count))


def any_of(child: Rule, count: int) -> Rule:
    return Rule(RuleKind.ANY_OF, children=(child,), count=int(count))


def rule_to_text(rule: Rule) -> str:
    """Canonical text form; parse_rule(rule_to_text(r)) == r."""
    kind = rule.kind
    if kind in COMPARISONS:
        return f"{kind.value}({rule.left}, {rule.right})"
    if kind == RuleKind.BETWEEN:
        return f"BETWEEN({rule.left}, {format_number(rule.lower)}, {format_number(rule.upper)})"
    if kind in COMBINATORS:
        return f"{kind.value}({', '.join(rule_to_text(c) for c in rule.children)})"
    if kind == RuleKind.NOT:
        return f"NOT({rule_to_text(rule.child)})"
    return f"{kind.value}({rule_to_text(rule.child)}, {rule.count})"


def iter_operands(rule: Rule):
    """Yield every operand in the tree, depth-first, left to right."""
    if rule.left is not None:
        yield rule.left
    if rule.right is not None:
        yield rule.right
    for child in rule.children:
        yield from iter_operands(child)


def extract_indicators(rule: Rule) -> Tuple[IndicatorKey, ...]:
    """Distinct indicator keys referenced by the rule, in first-seen order."""
    seen: Dict[IndicatorKey, None] = {}
    for operand in iter_operands(rule):
        if operand.kind == OperandKind.INDICATOR and operand.indicator not in seen:
            seen[operand.indicator] = None
    return tuple(seen)
