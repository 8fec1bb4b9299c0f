"""
Portfolio state machine: cash, open positions (at most one per code), closed
trades and the equity curve. Per code: Flat -> Open (entry) -> Flat (exit).

Shorts reserve their notional as collateral on entry; the exit returns the
collateral plus (entry - exit) * |quantity|, less the exit commission.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from ruletrader.core.types import ClosedTrade, EquityPoint, ExitReason, Position, Side
from ruletrader.portfolio.costs import NO_COSTS, ExecutionCosts

logger = logging.getLogger("ruletrader.portfolio")

ALREADY_OPEN = "already_open"
MAX_POSITIONS = "max_positions"
INSUFFICIENT_CAPITAL = "insufficient_capital"
INVALID_PRICE = "invalid_price"


@dataclass
class EntryResult:
    """Outcome of an entry attempt; reason explains a refusal."""
    entered: bool
    reason: str = ""
    position: Optional[Position] = None
    commission: float = 0.0


class Portfolio:
    """Mutated only through enter_long, enter_short, exit_position, check_triggers and record_equity."""

    def __init__(self, initial_capital: float):
        if not math.isfinite(initial_capital) or initial_capital <= 0:
            raise ValueError("initial_capital must be positive")
        self.initial_capital = float(initial_capital)
        self._cash = float(initial_capital)
        self._positions: Dict[str, Position] = {}
        self._closed: List[ClosedTrade] = []
        self._equity: List[EquityPoint] = []
        self._last_marks: Dict[str, float] = {}

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def positions(self) -> Mapping[str, Position]:
        return MappingProxyType(self._positions)

    @property
    def closed_trades(self) -> Tuple[ClosedTrade, ...]:
        return tuple(self._closed)

    @property
    def equity_curve(self) -> Tuple[EquityPoint, ...]:
        return tuple(self._equity)

    @property
    def position_count(self) -> int:
        return len(self._positions)

    def has_position(self, code: str) -> bool:
        return code in self._positions

    def get_position(self, code: str) -> Optional[Position]:
        return self._positions.get(code)

    # --- entries ---

    def enter_long(
        self,
        code: str,
        exchange: str,
        price: float,
        date: date,
        position_size: float,
        stop_loss_pct: float = 0.0,
        take_profit_pct: float = 0.0,
        max_positions: int = 1,
        costs: ExecutionCosts = NO_COSTS,
    ) -> EntryResult:
        return self._enter(
            Side.LONG, code, exchange, price, date, position_size,
            stop_loss_pct, take_profit_pct, max_positions, costs,
        )

    def enter_short(
        self,
        code: str,
        exchange: str,
        price: float,
        date: date,
        position_size: float,
        stop_loss_pct: float = 0.0,
        take_profit_pct: float = 0.0,
        max_positions: int = 1,
        costs: ExecutionCosts = NO_COSTS,
    ) -> EntryResult:
        return self._enter(
            Side.SHORT, code, exchange, price, date, position_size,
            stop_loss_pct, take_profit_pct, max_positions, costs,
        )

    def _enter(
        self,
        side: Side,
        code: str,
        exchange: str,
        price: float,
        date: date,
        position_size: float,
        stop_loss_pct: float,
        take_profit_pct: float,
        max_positions: int,
        costs: ExecutionCosts,
    ) -> EntryResult:
        if code in self._positions:
            return EntryResult(False, ALREADY_OPEN)
        if len(self._positions) >= max_positions:
            return EntryResult(False, MAX_POSITIONS)
        if not math.isfinite(price) or price <= 0:
            return EntryResult(False, INVALID_PRICE)

        fill = costs.buy_fill(price) if side == Side.LONG else costs.sell_fill(price)
        # Sizing base is cash only; open positions do not add buying power.
        quantity = int(math.floor(self._cash * position_size / fill)) if fill > 0 else 0
        if quantity <= 0:
            return EntryResult(False, INSUFFICIENT_CAPITAL)
        notional = quantity * fill
        commission = costs.commission(notional)
        if notional + commission > self._cash:
            return EntryResult(False, INSUFFICIENT_CAPITAL)

        if side == Side.LONG:
            stop = fill * (1.0 - stop_loss_pct / 100.0) if stop_loss_pct > 0 else 0.0
            take = fill * (1.0 + take_profit_pct / 100.0) if take_profit_pct > 0 else 0.0
        else:
            stop = fill * (1.0 + stop_loss_pct / 100.0) if stop_loss_pct > 0 else 0.0
            take = fill * (1.0 - take_profit_pct / 100.0) if take_profit_pct > 0 else 0.0
            quantity = -quantity

        self._cash -= notional + commission
        position = Position(
            code=code,
            exchange=exchange,
            quantity=quantity,
            entry_price=fill,
            entry_date=date,
            stop_loss=stop,
            take_profit=take,
            entry_commission=commission,
        )
        self._positions[code] = position
        self._last_marks[code] = price
        logger.debug(
            "Entered %s %s qty=%d fill=%.4f stop=%.4f take=%.4f cash=%.2f",
            side.value, code, quantity, fill, stop, take, self._cash,
        )
        return EntryResult(True, position=position, commission=commission)

    # --- exits ---

    def exit_position(
        self,
        code: str,
        price: float,
        date: date,
        costs: ExecutionCosts = NO_COSTS,
        reason: ExitReason = ExitReason.SIGNAL,
    ) -> Optional[ClosedTrade]:
        """Close the position in code at price. None when there is nothing to close."""
        position = self._positions.get(code)
        if position is None:
            return None
        if not math.isfinite(price) or price <= 0:
            return None

        size = abs(position.quantity)
        if position.is_long:
            fill = costs.sell_fill(price)
            commission = costs.commission(size * fill)
            self._cash += size * fill - commission
        else:
            fill = costs.buy_fill(price)
            commission = costs.commission(size * fill)
            self._cash += position.collateral + (position.entry_price - fill) * size - commission

        pnl = (fill - position.entry_price) * position.quantity - position.entry_commission - commission
        trade = ClosedTrade(
            code=position.code,
            exchange=position.exchange,
            quantity=position.quantity,
            entry_price=position.entry_price,
            exit_price=fill,
            entry_date=position.entry_date,
            exit_date=date,
            pnl=pnl,
            exit_reason=ExitReason(reason),
            fees=position.entry_commission + commission,
        )
        del self._positions[code]
        self._closed.append(trade)
        self._last_marks[code] = price
        logger.debug(
            "Exited %s %s reason=%s fill=%.4f pnl=%.2f cash=%.2f",
            position.side.value, code, trade.exit_reason.value, fill, pnl, self._cash,
        )
        return trade

    def check_triggers(
        self,
        price_map: Mapping[str, float],
        date: date,
        costs: ExecutionCosts = NO_COSTS,
    ) -> List[ClosedTrade]:
        """Exit every open position whose stop or take level is crossed; stop-loss wins ties."""
        closed: List[ClosedTrade] = []
        for code in list(self._positions):
            price = price_map.get(code)
            if price is None or not math.isfinite(price):
                continue
            reason = self._positions[code].trigger_reason(price)
            if reason is None:
                continue
            trade = self.exit_position(code, price, date, costs, reason)
            if trade is not None:
                closed.append(trade)
        return closed

    def close_all(
        self,
        price_map: Mapping[str, float],
        date: date,
        costs: ExecutionCosts = NO_COSTS,
        reason: ExitReason = ExitReason.END_OF_DATA,
    ) -> List[ClosedTrade]:
        """Liquidate every open position, at its last known mark when absent from price_map."""
        closed: List[ClosedTrade] = []
        for code in list(self._positions):
            trade = self.exit_position(code, self._mark_price(code, price_map), date, costs, reason)
            if trade is not None:
                closed.append(trade)
        return closed

    # --- valuation ---

    def mark(self, price_map: Mapping[str, float]) -> None:
        """Remember the latest known price of each open position."""
        for code in self._positions:
            price = price_map.get(code)
            if price is not None and math.isfinite(price):
                self._last_marks[code] = price

    def total_equity(self, price_map: Mapping[str, float]) -> float:
        """
        Cash plus the mark value of every open position. A code missing from
        price_map is valued at its last known mark, else at its entry price.
        """
        self.mark(price_map)
        value = self._cash
        for code, position in self._positions.items():
            value += position.market_value(self._mark_price(code, price_map))
        return value

    def _mark_price(self, code: str, price_map: Mapping[str, float]) -> float:
        """Price from price_map when finite, else the last mark, else the entry price."""
        price = price_map.get(code)
        if price is not None and math.isfinite(price):
            return price
        return self._last_marks.get(code, self._positions[code].entry_price)

    def record_equity(self, date: date, equity: float) -> None:
        self._equity.append(EquityPoint(date, equity))
