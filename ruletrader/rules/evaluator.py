"""
Rule evaluation at one bar index. Pure: reads bars and indicator values at
indices <= index only, keeps no state between calls.
"""

from __future__ import annotations
from typing import Mapping, Optional, Sequence

from ruletrader.core.types import Bar
from ruletrader.indicators.series import IndicatorKey, IndicatorSeries
from ruletrader.rules.ast import Operand, OperandKind, Rule, RuleKind

Indicators = Mapping[IndicatorKey, IndicatorSeries]


def resolve_operand(
    operand: Operand,
    bars: Sequence[Bar],
    indicators: Indicators,
    index: int,
) -> Optional[float]:
    """Operand value at index, or None when undefined (warm-up, missing series, out of range)."""
    if operand.kind == OperandKind.CONSTANT:
        return operand.constant
    if index < 0 or index >= len(bars):
        return None
    if operand.kind == OperandKind.PRICE:
        return float(getattr(bars[index], operand.price_field))
    series = indicators.get(operand.indicator)
    if series is None:
        return None
    return series.value(index, operand.field)


def _cross(rule: Rule, bars: Sequence[Bar], indicators: Indicators, index: int) -> bool:
    if index < 1:
        return False
    a_now = resolve_operand(rule.left, bars, indicators, index)
    b_now = resolve_operand(rule.right, bars, indicators, index)
    a_prev = resolve_operand(rule.left, bars, indicators, index - 1)
    b_prev = resolve_operand(rule.right, bars, indicators, index - 1)
    if a_now is None or b_now is None or a_prev is None or b_prev is None:
        return False
    if rule.kind == RuleKind.CROSS_ABOVE:
        return a_prev <= b_prev and a_now > b_now
    return a_prev >= b_prev and a_now < b_now


def evaluate(rule: Rule, bars: Sequence[Bar], indicators: Indicators, index: int) -> bool:
    """True iff the rule holds at bar index. Undefined operands make a comparison false."""
    kind = rule.kind

    if kind in (RuleKind.ABOVE, RuleKind.BELOW, RuleKind.EQUALS):
        a = resolve_operand(rule.left, bars, indicators, index)
        b = resolve_operand(rule.right, bars, indicators, index)
        if a is None or b is None:
            return False
        if kind == RuleKind.ABOVE:
            return a > b
        if kind == RuleKind.BELOW:
            return a < b
        return a == b

    if kind in (RuleKind.CROSS_ABOVE, RuleKind.CROSS_BELOW):
        return _cross(rule, bars, indicators, index)

    if kind == RuleKind.BETWEEN:
        v = resolve_operand(rule.left, bars, indicators, index)
        return v is not None and rule.lower <= v <= rule.upper

    if kind == RuleKind.AND:
        return all(evaluate(c, bars, indicators, index) for c in rule.children)

    if kind == RuleKind.OR:
        return any(evaluate(c, bars, indicators, index) for c in rule.children)

    if kind == RuleKind.NOT:
        return not evaluate(rule.child, bars, indicators, index)

    if kind == RuleKind.CONSECUTIVE:
        # Needs `count` bars of history ending at index.
        if rule.count < 1 or index + 1 < rule.count:
            return False
        return all(
            evaluate(rule.child, bars, indicators, i)
            for i in range(index, index - rule.count, -1)
        )

    if kind == RuleKind.ANY_OF:
        if rule.count < 1:
            return False
        start = max(0, index - rule.count + 1)
        return any(evaluate(rule.child, bars, indicators, i) for i in range(index, start - 1, -1))

    raise ValueError(f"unknown rule kind: {kind}")
