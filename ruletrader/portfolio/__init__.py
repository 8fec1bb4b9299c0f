"""Portfolio: cost model and position state machine."""

from ruletrader.portfolio.costs import ExecutionCosts
from ruletrader.portfolio.portfolio import EntryResult, Portfolio

__all__ = ["ExecutionCosts", "EntryResult", "Portfolio"]
