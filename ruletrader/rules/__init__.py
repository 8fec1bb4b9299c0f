"""Rules: condition trees, text parser and per-bar evaluator."""

from ruletrader.rules.ast import (
    Operand,
    OperandKind,
    Rule,
    RuleKind,
    extract_indicators,
    rule_to_text,
)
from ruletrader.rules.parser import parse_rule
from ruletrader.rules.evaluator import evaluate, resolve_operand

__all__ = [
    "Operand",
    "OperandKind",
    "Rule",
    "RuleKind",
    "extract_indicators",
    "rule_to_text",
    "parse_rule",
    "evaluate",
    "resolve_operand",
]
