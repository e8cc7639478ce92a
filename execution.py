"""
Execution adapters.

Strategies submit orders through ``execute_trade`` and never care whether
they run in a backtest or against live prices. Both adapters here fill
against a Ledger: ``SimulatedExecution`` at the replayed candle's close,
``PaperExecution`` at the current ticker price.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Union

from core import Candle, OrderSide, OrderType, Trade, now_ms, split_symbol
from errors import InsufficientBalanceError
from ledger import Ledger
from risk import RiskGate


logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = 0.001  # 0.1% of notional


class ExecutionService(ABC):
    """Contract shared by backtest, paper and live execution."""

    @abstractmethod
    def execute_trade(
        self,
        symbol: str,
        side: Union[str, OrderSide],
        amount: Optional[float],
        order_type: Union[str, OrderType] = OrderType.MARKET,
        metadata: Optional[Dict[str, Any]] = None,
        price: Optional[float] = None
    ) -> Optional[Trade]:
        """
        Fill an order.

        Args:
            symbol: Trading pair, e.g. 'BTC/USD'
            side: 'buy' or 'sell'
            amount: Base amount, or None to let the risk gate size it
            order_type: 'market' or 'limit'
            metadata: Strategy name and intent kind
            price: Execution price; None uses the market price

        Returns:
            The filled Trade, or None when the order was rejected
        """

    @abstractmethod
    def cash_balance(self, symbol: Optional[str] = None) -> float:
        """Quote currency available for the symbol."""


class LedgerExecution(ExecutionService):
    """
    Fill orders against a Ledger, sizing them with the risk gate.

    Fills are all-or-nothing: a rejected order leaves the ledger and the
    trade log untouched.
    """

    id_prefix = "sim"

    def __init__(
        self,
        ledger: Ledger,
        risk_gate: RiskGate,
        fee_rate: float = DEFAULT_FEE_RATE,
        quote_asset: str = "USD"
    ):
        self.ledger = ledger
        self.risk_gate = risk_gate
        self.fee_rate = fee_rate
        self.quote_asset = quote_asset
        self.trades: List[Trade] = []
        self._sequence = 0

    @abstractmethod
    def _market_price(self, symbol: str) -> Optional[float]:
        """Price used when the order does not carry one."""

    @abstractmethod
    def _timestamp(self) -> int:
        """Fill time for the next trade."""

    def _next_id(self) -> str:
        self._sequence += 1
        return f"{self.id_prefix}-{self._sequence:06d}"

    def cash_balance(self, symbol: Optional[str] = None) -> float:
        quote = split_symbol(symbol, self.quote_asset)[1] if symbol else self.quote_asset
        return self.ledger.balance(quote)

    def execute_trade(
        self,
        symbol: str,
        side: Union[str, OrderSide],
        amount: Optional[float],
        order_type: Union[str, OrderType] = OrderType.MARKET,
        metadata: Optional[Dict[str, Any]] = None,
        price: Optional[float] = None
    ) -> Optional[Trade]:
        side = OrderSide.parse(side)
        order_type = OrderType.parse(order_type)
        base, quote = split_symbol(symbol, self.quote_asset)
        timestamp = self._timestamp()

        if price is None:
            if order_type is OrderType.LIMIT:
                logger.error("%s limit order at %s requires a price, skipped", symbol, timestamp)
                return None
            price = self._market_price(symbol)
        if price is None or price <= 0:
            logger.error("%s: unable to determine trade price at %s, skipped", symbol, timestamp)
            return None

        if amount is None:
            amount = self.risk_gate.calculate_lot_size(symbol, price, self.ledger.balance(quote))
        if amount <= 0:
            logger.warning(
                "%s: resolved %s amount %.8f at %s is not positive, skipped",
                symbol, side.value, amount, timestamp
            )
            return None

        try:
            if side is OrderSide.BUY:
                self.ledger.buy(base, quote, amount, price)
            else:
                self.ledger.sell(base, quote, amount, price)
        except InsufficientBalanceError as e:
            logger.warning(
                "%s: %s %.8f @ %.2f rejected at %s: %s",
                symbol, side.value, amount, price, timestamp, e
            )
            return None

        notional = amount * price
        trade = Trade(
            id=self._next_id(),
            symbol=symbol,
            side=side,
            type=order_type,
            amount=amount,
            price=price,
            status="closed",
            timestamp=timestamp,
            fee=notional * self.fee_rate,
            metadata=dict(metadata or {}),
        )
        self.trades.append(trade)
        logger.debug(
            "Filled %s %s %.8f %s @ %.2f. %s balance: %.2f",
            trade.id, side.value, amount, base, price, quote, self.ledger.balance(quote)
        )
        return trade


class SimulatedExecution(LedgerExecution):
    """
    Backtest adapter. The engine binds the candle being replayed; market
    orders fill at its close and every fill carries its timestamp, so a
    replay never reads the wall clock.
    """

    id_prefix = "bt"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.current_candle: Optional[Candle] = None

    def set_candle(self, candle: Candle) -> None:
        self.current_candle = candle

    def _market_price(self, symbol: str) -> Optional[float]:
        if self.current_candle is None:
            logger.error("Backtest: no current candle, cannot price %s", symbol)
            return None
        return self.current_candle.close

    def _timestamp(self) -> int:
        return self.current_candle.timestamp if self.current_candle is not None else 0


class PaperExecution(LedgerExecution):
    """
    Paper-trading adapter filling at live prices.

    Args:
        price_source: Callable returning the current price for a symbol,
            e.g. ``KrakenDataSource.get_current_price``
    """

    id_prefix = "paper"

    def __init__(self, ledger: Ledger, risk_gate: RiskGate, price_source: Callable[[str], float], **kwargs):
        super().__init__(ledger, risk_gate, **kwargs)
        self.price_source = price_source

    def _market_price(self, symbol: str) -> Optional[float]:
        return self.price_source(symbol)

    def _timestamp(self) -> int:
        return now_ms()
