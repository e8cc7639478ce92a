"""
MACD Cross Strategy - trend following on MACD / signal line crossovers.
"""
from typing import Sequence

import indicators
from strategies.base import BaseStrategy
from core import Candle, PositionSide


class MacdCrossStrategy(BaseStrategy):
    """
    Trade MACD line crossings of its signal line.

    Logic:
    - Bullish cross: exit a short, or enter long when flat
    - Bearish cross: exit a long, or enter short when flat
    - Entry size: risk-gate lot size scaled down for recent volatility,
      and only if it passes trade validation
    """

    name = "MACD_Cross"

    @property
    def fast_period(self) -> int:
        return int(self.params.get("fast_period", 12))

    @property
    def slow_period(self) -> int:
        return int(self.params.get("slow_period", 26))

    @property
    def signal_period(self) -> int:
        return int(self.params.get("signal_period", 9))

    def indicator_periods(self) -> Sequence[int]:
        # MACD needs slow + signal - 1 closes before its first value
        return (self.slow_period + self.signal_period - 1,)

    def on_candle(self, candle: Candle) -> None:
        values = indicators.macd(self.closes(), self.fast_period, self.slow_period, self.signal_period)
        if len(values) < 2:
            return

        prev, curr = values[-2], values[-1]
        bullish = prev["macd"] <= prev["signal"] and curr["macd"] > curr["signal"]
        bearish = prev["macd"] >= prev["signal"] and curr["macd"] < curr["signal"]
        if not (bullish or bearish):
            return

        position = self.position
        if position is not None:
            if (bullish and position.side is PositionSide.SHORT) or (bearish and position.side is PositionSide.LONG):
                self.logger.info("Opposite MACD cross for %s at %s, exiting", self.symbol, candle.timestamp)
                self.exit_position(candle)
            return

        side = PositionSide.LONG if bullish else PositionSide.SHORT
        amount = self._position_size(candle)
        if amount > 0:
            self.enter_position(side, candle, amount=amount)

    def _position_size(self, candle: Candle) -> float:
        gate = self.monitor.risk_gate
        balance = self.execution.cash_balance(self.symbol)
        base_size = gate.calculate_lot_size(self.symbol, candle.close, balance)
        amount = gate.adjust_position_for_volatility(self.closes(), base_size)
        if not gate.validate_trade(self.symbol, amount, candle.close, balance):
            return 0.0
        return amount
