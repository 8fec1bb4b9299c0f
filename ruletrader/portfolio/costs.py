"""
Transaction cost model: flat + percentage commission, percentage slippage.
"""

from __future__ import annotations
from dataclasses import dataclass


@dataclass(frozen=True)
class ExecutionCosts:
    """commission_flat is an amount per fill; commission_pct and slippage_pct are percentages."""
    commission_flat: float = 0.0
    commission_pct: float = 0.0
    slippage_pct: float = 0.0

    def __post_init__(self) -> None:
        if self.commission_flat < 0 or self.commission_pct < 0 or self.slippage_pct < 0:
            raise ValueError("execution costs must be non-negative")

    def commission(self, notional: float) -> float:
        return self.commission_flat + abs(notional) * self.commission_pct / 100.0

    def buy_fill(self, price: float) -> float:
        """Fill price when buying: slippage moves it up."""
        return price * (1.0 + self.slippage_pct / 100.0)

    def sell_fill(self, price: float) -> float:
        """Fill price when selling: slippage moves it down."""
        return price * (1.0 - self.slippage_pct / 100.0)


NO_COSTS = ExecutionCosts()
