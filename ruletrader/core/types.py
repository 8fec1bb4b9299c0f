"""
Core data types for bars, positions, closed trades and equity snapshots.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import date
from enum import Enum


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"


class ExitReason(str, Enum):
    SIGNAL = "signal"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"
    END_OF_DATA = "end_of_data"


@dataclass(frozen=True)
class Bar:
    """Daily OHLCV bar for one instrument."""
    code: str
    exchange: str
    date: date
    open: float
    high: float
    low: float
    close: float
    volume: int

    @property
    def typical_price(self) -> float:
        return (self.high + self.low + self.close) / 3.0

    def true_range(self, prev_close: float) -> float:
        return max(
            self.high - self.low,
            abs(self.high - prev_close),
            abs(self.low - prev_close),
        )


@dataclass
class Position:
    """Open position state. Quantity is signed: positive long, negative short."""
    code: str
    exchange: str
    quantity: int
    entry_price: float
    entry_date: date
    stop_loss: float = 0.0
    take_profit: float = 0.0
    entry_commission: float = 0.0

    @property
    def side(self) -> Side:
        return Side.LONG if self.quantity > 0 else Side.SHORT

    @property
    def is_long(self) -> bool:
        return self.quantity > 0

    @property
    def is_short(self) -> bool:
        return self.quantity < 0

    @property
    def collateral(self) -> float:
        """Cash reserved when the position was opened (excluding commission)."""
        return abs(self.quantity) * self.entry_price

    def unrealized_pnl(self, price: float) -> float:
        return self.quantity * (price - self.entry_price)

    def market_value(self, price: float) -> float:
        """Cash the position would return if closed at price, before costs."""
        return self.collateral + self.unrealized_pnl(price)

    def should_stop_loss(self, price: float) -> bool:
        if self.stop_loss == 0.0:
            return False
        if self.is_long:
            return price <= self.stop_loss
        return price >= self.stop_loss

    def should_take_profit(self, price: float) -> bool:
        if self.take_profit == 0.0:
            return False
        if self.is_long:
            return price >= self.take_profit
        return price <= self.take_profit

    def trigger_reason(self, price: float) -> ExitReason | None:
        """Stop-loss wins when both levels are crossed by the same price."""
        if self.should_stop_loss(price):
            return ExitReason.STOP_LOSS
        if self.should_take_profit(price):
            return ExitReason.TAKE_PROFIT
        return None


@dataclass(frozen=True)
class ClosedTrade:
    """Closed trade for analytics. pnl is net of entry and exit commissions."""
    code: str
    exchange: str
    quantity: int
    entry_price: float
    exit_price: float
    entry_date: date
    exit_date: date
    pnl: float
    exit_reason: ExitReason = ExitReason.SIGNAL
    fees: float = 0.0

    @property
    def side(self) -> Side:
        return Side.LONG if self.quantity > 0 else Side.SHORT

    @property
    def duration_days(self) -> int:
        return (self.exit_date - self.entry_date).days


@dataclass(frozen=True)
class EquityPoint:
    date: date
    equity: float
