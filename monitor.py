"""
Position monitor: the single source of truth for open positions.

One position per symbol. Strategies and the backtest engine query the
monitor instead of keeping their own copies.
"""
import logging
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Union

from core import ExitAction, OrderSide, OrderType, Position, PositionSide, Trade
from errors import PositionAlreadyOpenError
from risk import RiskGate

if TYPE_CHECKING:
    from execution import ExecutionService


logger = logging.getLogger(__name__)


class PositionMonitor:
    """
    Track open positions and decide when a stop or target is hit.

    Example:
        >>> monitor = PositionMonitor(RiskGate(RiskConfig()))
        >>> monitor.open("BTC/USD", "long", 50000, 0.01)
        >>> monitor.check_exit("BTC/USD", 48900)
        <ExitAction.STOP_LOSS: 'stop_loss'>
    """

    def __init__(self, risk_gate: RiskGate):
        self.risk_gate = risk_gate
        self._positions: Dict[str, Position] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def open(
        self,
        symbol: str,
        side: Union[str, PositionSide, OrderSide],
        entry_price: float,
        amount: float,
        risk: Optional[Mapping[str, float]] = None,
        opened_at: Optional[int] = None,
        stop_loss_price: Optional[float] = None,
        take_profit_price: Optional[float] = None
    ) -> Position:
        """
        Start tracking a filled entry.

        Stop and target come from the risk gate, using the strategy's
        stop_loss_percentage / take_profit_percentage overrides in ``risk``
        when given. Explicit prices take precedence over both.

        Raises:
            PositionAlreadyOpenError: If the symbol already has a position
        """
        if symbol in self._positions:
            raise PositionAlreadyOpenError(symbol)

        side = PositionSide.parse(side)
        risk = risk or {}
        if stop_loss_price is None:
            stop_loss_price = self.risk_gate.calculate_stop_loss(
                entry_price, side, risk.get("stop_loss_percentage")
            )
        if take_profit_price is None:
            take_profit_price = self.risk_gate.calculate_take_profit(
                entry_price, side, risk.get("take_profit_percentage")
            )

        position = Position(
            symbol=symbol,
            side=side,
            entry_price=entry_price,
            amount=amount,
            stop_loss_price=stop_loss_price,
            take_profit_price=take_profit_price,
            opened_at=opened_at,
        )
        self._positions[symbol] = position
        logger.info(
            "Opened %s %s %.8f @ %.2f (SL %.2f, TP %.2f)",
            side.value, symbol, amount, entry_price, stop_loss_price, take_profit_price
        )
        return position

    def get(self, symbol: str) -> Optional[Position]:
        return self._positions.get(symbol)

    def is_open(self, symbol: str) -> bool:
        return symbol in self._positions

    def open_positions(self) -> List[Position]:
        return list(self._positions.values())

    def close(self, symbol: str) -> Optional[Position]:
        """Stop tracking a position once its exit has filled."""
        position = self._positions.pop(symbol, None)
        if position is None:
            logger.warning("No open position to close for %s", symbol)
        else:
            logger.info("Position cleared for %s", symbol)
        return position

    def check_exit(self, symbol: str, current_price: float) -> Optional[ExitAction]:
        """
        Decide whether the price triggers an exit.

        Stop loss is checked first, so a tick that satisfies both the stop
        and the target resolves to STOP_LOSS.

        Returns:
            The triggered action, or None to hold
        """
        position = self._positions.get(symbol)
        if position is None:
            return None
        if position.check_stop_loss(current_price):
            return ExitAction.STOP_LOSS
        if position.check_take_profit(current_price):
            return ExitAction.TAKE_PROFIT
        return None

    def exit_if_triggered(
        self,
        symbol: str,
        current_price: float,
        execution: "ExecutionService",
        strategy_name: str = "RiskManager"
    ) -> Optional[Trade]:
        """
        Close the position through ``execution`` when a stop or target hits.

        The position is cleared only after the adapter returns a filled
        trade; a rejected exit leaves it open for the next tick.

        Returns:
            The exit trade, or None if nothing triggered or the exit failed
        """
        action = self.check_exit(symbol, current_price)
        if action is None:
            return None

        position = self._positions[symbol]
        logger.warning(
            "%s triggered for %s %s position at %.2f",
            action.value.upper(), symbol, position.side.value, current_price
        )
        order = execution.execute_trade(
            symbol,
            position.side.exit_side,
            position.amount,
            OrderType.MARKET,
            {"strategy": strategy_name, "kind": action.intent.value},
            price=current_price,
        )
        if order is None:
            logger.error("Exit order for %s was not filled, position stays open", symbol)
            return None

        self.close(symbol)
        return order
