"""
Performance metrics for a finished run.

Works on the two outputs of a run: the append-only trade log and the
equity curve. Round-trip P&L is rebuilt from the trade log by pairing
each closing order with the oldest open lots of the same symbol (FIFO).
"""
import math
from collections import defaultdict, deque
from dataclasses import dataclass, field, asdict
from typing import Any, Deque, Dict, List, Sequence

import numpy as np

from core import EquityPoint, OrderSide, PositionSide, Trade


# Amounts below this are treated as fully matched
AMOUNT_EPSILON = 1e-12


@dataclass(frozen=True)
class ClosedTrade:
    """
    Realized round trip produced by one closing order.

    Attributes:
        symbol: Trading pair
        side: Direction of the lots that were closed
        amount: Matched amount
        entry_price: Amount-weighted entry price of the matched lots
        exit_price: Fill price of the closing order
        pnl: Realized profit/loss in quote currency (fees excluded)
        entry_ids: Ids of the entry trades the amount was matched against
        exit_id: Id of the closing trade
    """
    symbol: str
    side: PositionSide
    amount: float
    entry_price: float
    exit_price: float
    pnl: float
    entry_ids: tuple
    exit_id: str

    def is_win(self) -> bool:
        return self.pnl > 0

    def is_loss(self) -> bool:
        return self.pnl < 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["side"] = self.side.value
        data["entry_ids"] = list(self.entry_ids)
        return data


@dataclass
class _Lot:
    side: PositionSide
    price: float
    amount: float
    trade_id: str


@dataclass
class PerformanceMetrics:
    """Summary statistics reported for a run."""
    initial_capital: float
    final_capital: float
    total_return: float
    profit_factor: float
    sharpe_ratio: float
    max_drawdown: float
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: float
    closed_trades: int = 0
    gross_profit: float = 0.0
    gross_loss: float = 0.0
    total_fees: float = 0.0
    round_trips: List[ClosedTrade] = field(default_factory=list, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict; an infinite profit factor or Sharpe ratio becomes None."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, float) and not math.isfinite(value):
                data[key] = None
        data["round_trips"] = [trip.to_dict() for trip in self.round_trips]
        return data


def calculate_total_return(initial_capital: float, final_capital: float) -> float:
    """Total return as a decimal; 0 when there was no initial capital."""
    if initial_capital == 0:
        return 0.0
    return (final_capital - initial_capital) / initial_capital


def calculate_max_drawdown(equity_curve: Sequence[EquityPoint]) -> float:
    """Largest decline from a running peak, as a decimal."""
    if not equity_curve:
        return 0.0

    peak = equity_curve[0].balance
    max_dd = 0.0

    for point in equity_curve:
        if point.balance > peak:
            peak = point.balance
        if peak > 0:
            max_dd = max(max_dd, (peak - point.balance) / peak)

    return max_dd


def calculate_sharpe_ratio(equity_curve: Sequence[EquityPoint], risk_free_rate: float = 0.0) -> float:
    """
    Per-step Sharpe ratio of the equity curve.

    Step returns treat a zero previous balance as a zero return. The ratio
    is mean(excess) / population std(excess). With zero dispersion it is
    +inf for a positive mean and 0 otherwise.

    Args:
        equity_curve: Equity points in replay order
        risk_free_rate: Risk-free rate per step

    Returns:
        Sharpe ratio (not annualized)
    """
    if len(equity_curve) < 2:
        return 0.0

    balances = np.array([point.balance for point in equity_curve], dtype=float)
    previous = balances[:-1]
    changes = np.diff(balances)
    returns = np.divide(changes, previous, out=np.zeros_like(changes), where=previous != 0)

    excess = returns - risk_free_rate
    mean = float(np.mean(excess))
    std = float(np.std(excess))

    if std == 0:
        return math.inf if mean > 0 else 0.0
    return mean / std


def pair_trades(trades: Sequence[Trade]) -> List[ClosedTrade]:
    """
    Pair closing orders with open lots, first in first out.

    A sell first closes open long lots of its symbol and a buy first closes
    open short lots; whatever amount is left opens a new lot on the order's
    own side.

    Args:
        trades: Trade log in execution order

    Returns:
        One ClosedTrade per order that closed at least part of a lot
    """
    lots: Dict[str, Deque[_Lot]] = defaultdict(deque)
    closed: List[ClosedTrade] = []

    for trade in trades:
        queue = lots[trade.symbol]
        closes_side = PositionSide.LONG if trade.side is OrderSide.SELL else PositionSide.SHORT
        remaining = trade.amount
        matched = 0.0
        cost = 0.0
        pnl = 0.0
        entry_ids = []

        while remaining > AMOUNT_EPSILON and queue and queue[0].side is closes_side:
            lot = queue[0]
            quantity = min(lot.amount, remaining)
            if closes_side is PositionSide.LONG:
                pnl += (trade.price - lot.price) * quantity
            else:
                pnl += (lot.price - trade.price) * quantity
            matched += quantity
            cost += lot.price * quantity
            entry_ids.append(lot.trade_id)

            lot.amount -= quantity
            remaining -= quantity
            if lot.amount <= AMOUNT_EPSILON:
                queue.popleft()

        if matched > 0:
            closed.append(ClosedTrade(
                symbol=trade.symbol,
                side=closes_side,
                amount=matched,
                entry_price=cost / matched,
                exit_price=trade.price,
                pnl=pnl,
                entry_ids=tuple(entry_ids),
                exit_id=trade.id,
            ))

        if remaining > AMOUNT_EPSILON:
            queue.append(_Lot(
                side=PositionSide.parse(trade.side),
                price=trade.price,
                amount=remaining,
                trade_id=trade.id,
            ))

    return closed


def calculate_profit_factor(closed_trades: Sequence[ClosedTrade]) -> float:
    """Gross profit / gross loss; no losses gives inf with profit, else 0."""
    gross_profit = sum(t.pnl for t in closed_trades if t.pnl > 0)
    gross_loss = abs(sum(t.pnl for t in closed_trades if t.pnl < 0))
    if gross_loss == 0:
        return math.inf if gross_profit > 0 else 0.0
    return gross_profit / gross_loss


def calculate_all(
    initial_capital: float,
    final_capital: float,
    trades: Sequence[Trade],
    equity_curve: Sequence[EquityPoint],
    risk_free_rate: float = 0.0
) -> PerformanceMetrics:
    """
    Calculate every reported metric.

    ``total_trades`` counts orders in the trade log; win/loss counts and
    the win rate are over FIFO-paired round trips.
    """
    closed = pair_trades(trades)
    winning = [t for t in closed if t.is_win()]
    losing = [t for t in closed if t.is_loss()]

    return PerformanceMetrics(
        initial_capital=initial_capital,
        final_capital=final_capital,
        total_return=calculate_total_return(initial_capital, final_capital),
        profit_factor=calculate_profit_factor(closed),
        sharpe_ratio=calculate_sharpe_ratio(equity_curve, risk_free_rate),
        max_drawdown=calculate_max_drawdown(equity_curve),
        total_trades=len(trades),
        winning_trades=len(winning),
        losing_trades=len(losing),
        win_rate=len(winning) / len(closed) if closed else 0.0,
        closed_trades=len(closed),
        gross_profit=sum(t.pnl for t in winning),
        gross_loss=abs(sum(t.pnl for t in losing)),
        total_fees=sum(t.fee for t in trades),
        round_trips=closed,
    )
