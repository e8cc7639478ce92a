"""
Base strategy class that all strategies must implement.

This module provides the abstract base class for trading strategies. A
strategy receives one candle at a time, keeps a bounded window of recent
candles, and turns indicator signals into entry and exit orders through an
execution adapter. The same code runs in backtests and paper trading.
"""
import logging
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, List, Optional, Sequence, Union

from config.manager import StrategyConfig
from core import Candle, IntentKind, OrderType, Position, PositionSide, Trade
from execution import ExecutionService
from monitor import PositionMonitor


class BaseStrategy(ABC):
    """
    Abstract base class for all trading strategies.

    Subclasses implement ``indicator_periods`` (which sizes the rolling
    window) and ``on_candle`` (the trading logic).

    Attributes:
        name: Registered strategy name
        symbol: Trading pair
        config: Strategy configuration object
        params: Strategy-specific parameters dictionary
        execution: Adapter that fills orders
        monitor: Owner of the open position for ``symbol``

    Example:
        >>> strategy = RsiEmaConfluenceStrategy("BTC/USD", config, execution, monitor)
        >>> strategy.initialize()
        >>> strategy.run(candle)
    """

    name = "base"

    def __init__(
        self,
        symbol: str,
        config: StrategyConfig,
        execution: ExecutionService,
        monitor: PositionMonitor,
        warmup: Optional[Sequence[Candle]] = None
    ):
        """
        Initialize strategy with configuration.

        Args:
            symbol: Trading pair to trade
            config: StrategyConfig with parameters and settings
            execution: Execution adapter (simulated, paper or live)
            monitor: Position monitor shared with the runner
            warmup: Candles preloaded by initialize(), oldest first
        """
        self.symbol = symbol
        self.config = config
        self.params = config.params
        self.execution = execution
        self.monitor = monitor
        self.logger = logging.getLogger(f"{__name__}.{type(self).__name__}")
        self._warmup = list(warmup or [])
        self.history: Deque[Candle] = deque(maxlen=self.window_size)
        self.last_signal_time: Optional[int] = None
        self.initialized = False

    @abstractmethod
    def indicator_periods(self) -> Sequence[int]:
        """Lookback periods of the indicators this strategy computes."""

    @abstractmethod
    def on_candle(self, candle: Candle) -> None:
        """
        Trading logic for a new, valid candle already appended to ``history``.

        Implementations decide to hold, call ``enter_position`` or call
        ``exit_position``.
        """

    @property
    def window_size(self) -> int:
        """Rolling window: twice the longest indicator period."""
        return 2 * max(self.indicator_periods())

    @property
    def cooldown_period(self) -> int:
        if self.config.cooldown_period is not None:
            return self.config.cooldown_period
        return self.monitor.risk_gate.config.cooldown_period

    @property
    def position(self) -> Optional[Position]:
        """Open position for the symbol, read from the monitor."""
        return self.monitor.get(self.symbol)

    def initialize(self) -> None:
        """Reset state and preload warm-up candles. Must run before ``run``."""
        self.reset()
        for candle in self._warmup:
            if candle.is_valid():
                self.history.append(candle)
        self.initialized = True
        self.logger.info(
            "Initialized %s for %s (window %d, %d warm-up candles)",
            self.name, self.symbol, self.window_size, len(self.history)
        )

    def reset(self) -> None:
        """Clear the candle window and cooldown state."""
        self.history.clear()
        self.last_signal_time = None

    def run(self, candle: Candle) -> None:
        """
        Process the latest candle.

        Invalid candles are logged and skipped without raising.

        Raises:
            RuntimeError: If called before ``initialize``
        """
        if not self.initialized:
            raise RuntimeError(f"{self.name} must be initialized before run()")
        if not candle.is_valid():
            self.logger.warning(
                "Rejected invalid candle for %s at %s: %s",
                self.symbol, candle.timestamp, candle.to_dict()
            )
            return

        self.history.append(candle)
        self.on_candle(candle)

    def closes(self) -> List[float]:
        return [c.close for c in self.history]

    def is_in_cooldown(self, now: int) -> bool:
        """True while a new entry signal would come too soon after the last one."""
        if self.last_signal_time is None:
            return False
        return not self.monitor.risk_gate.validate_cooldown(
            self.last_signal_time, self.cooldown_period, now=now
        )

    def set_last_signal_time(self, timestamp: int) -> None:
        self.last_signal_time = timestamp

    def enter_position(
        self,
        side: Union[str, PositionSide],
        candle: Candle,
        amount: Optional[float] = None
    ) -> Optional[Trade]:
        """
        Submit an entry order and register the filled position.

        Entries are skipped while a position is open (no pyramiding),
        during cooldown, or when the concurrent-trade limit is reached.

        Args:
            side: LONG or SHORT
            candle: Candle that produced the signal
            amount: Base amount, or None to let the risk gate size it

        Returns:
            The entry trade, or None if skipped or rejected
        """
        side = PositionSide.parse(side)

        if self.position is not None:
            self.logger.debug("Position already open for %s, %s entry ignored", self.symbol, side.value)
            return None
        if self.is_in_cooldown(candle.timestamp):
            self.logger.info("%s %s entry suppressed by cooldown at %s", self.symbol, side.value, candle.timestamp)
            return None
        max_trades = self.monitor.risk_gate.get_max_concurrent_trades(self.execution.cash_balance(self.symbol))
        if len(self.monitor) >= max_trades:
            self.logger.info("%s entry skipped: %d positions open (limit %d)", self.symbol, len(self.monitor), max_trades)
            return None

        order = self.execution.execute_trade(
            self.symbol,
            side.entry_side,
            amount,
            OrderType.MARKET,
            {"strategy": self.name, "kind": IntentKind.ENTRY.value}
        )
        if order is None:
            self.logger.warning("%s %s entry at %s was not filled", self.symbol, side.value, candle.timestamp)
            return None

        self.monitor.open(
            self.symbol,
            side,
            order.price,
            order.amount,
            risk=self.config.risk,
            opened_at=order.timestamp,
        )
        self.set_last_signal_time(candle.timestamp)
        return order

    def exit_position(self, candle: Candle) -> Optional[Trade]:
        """Close the open position at market. Exits ignore cooldown."""
        position = self.position
        if position is None:
            self.logger.warning("Attempted to exit %s, but no position exists", self.symbol)
            return None

        order = self.execution.execute_trade(
            self.symbol,
            position.side.exit_side,
            position.amount,
            OrderType.MARKET,
            {"strategy": self.name, "kind": IntentKind.EXIT.value}
        )
        if order is None:
            self.logger.error("Failed to exit %s %s position at %s", self.symbol, position.side.value, candle.timestamp)
            return None

        self.monitor.close(self.symbol)
        self.logger.info("Exited %s %s position. Order ID: %s", position.side.value, self.symbol, order.id)
        return order
