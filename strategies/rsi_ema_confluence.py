"""
RSI / EMA Confluence Strategy - momentum reversal with trend confirmation.
"""
import math
from typing import Sequence

import indicators
from strategies.base import BaseStrategy
from core import Candle, PositionSide


class RsiEmaConfluenceStrategy(BaseStrategy):
    """
    Enter when an RSI threshold cross and an EMA crossover land on the same candle.

    Logic:
    - LONG: RSI crosses up through oversold AND fast EMA crosses up through slow EMA
    - SHORT: RSI crosses down through overbought AND fast EMA crosses down through slow EMA
    - No decision until the window is full or while any indicator is NaN
    - Exits are left to the position monitor's stop loss / take profit
    """

    name = "RSI_EMA_Confluence"

    @property
    def rsi_period(self) -> int:
        return int(self.params.get("rsi_period", 14))

    @property
    def fast_ema_period(self) -> int:
        return int(self.params.get("fast_ema_period", 9))

    @property
    def slow_ema_period(self) -> int:
        return int(self.params.get("slow_ema_period", 21))

    @property
    def rsi_oversold(self) -> float:
        return float(self.params.get("rsi_oversold", 30))

    @property
    def rsi_overbought(self) -> float:
        return float(self.params.get("rsi_overbought", 70))

    def indicator_periods(self) -> Sequence[int]:
        return (self.rsi_period, self.fast_ema_period, self.slow_ema_period)

    def on_candle(self, candle: Candle) -> None:
        """Check both crossovers on the latest candle."""
        closes = self.closes()
        if len(closes) < self.window_size:
            self.logger.debug(
                "Not enough data for %s yet for %s (%d/%d)",
                self.name, self.symbol, len(closes), self.window_size
            )
            return

        rsi = indicators.rsi(closes, self.rsi_period)
        fast_ema = indicators.ema(closes, self.fast_ema_period)
        slow_ema = indicators.ema(closes, self.slow_ema_period)
        if min(len(rsi), len(fast_ema), len(slow_ema)) < 2:
            return

        prev_rsi, curr_rsi = rsi[-2], rsi[-1]
        prev_fast, curr_fast = fast_ema[-2], fast_ema[-1]
        prev_slow, curr_slow = slow_ema[-2], slow_ema[-1]

        if any(math.isnan(v) for v in (prev_rsi, curr_rsi, prev_fast, curr_fast, prev_slow, curr_slow)):
            self.logger.debug("Indicator NaN for %s at %s, skipping decision", self.symbol, candle.timestamp)
            return

        self.logger.debug(
            "%s - RSI: %.2f, Fast EMA: %.2f, Slow EMA: %.2f",
            self.symbol, curr_rsi, curr_fast, curr_slow
        )

        rsi_oversold_cross = prev_rsi <= self.rsi_oversold < curr_rsi
        ema_cross_up = prev_fast <= prev_slow and curr_fast > curr_slow

        if rsi_oversold_cross and ema_cross_up:
            self.logger.info(
                "LONG signal for %s at %s: RSI %.2f crossed oversold, EMA cross up",
                self.symbol, candle.timestamp, curr_rsi
            )
            self.enter_position(PositionSide.LONG, candle)
            return

        rsi_overbought_cross = prev_rsi >= self.rsi_overbought > curr_rsi
        ema_cross_down = prev_fast >= prev_slow and curr_fast < curr_slow

        if rsi_overbought_cross and ema_cross_down:
            self.logger.info(
                "SHORT signal for %s at %s: RSI %.2f crossed overbought, EMA cross down",
                self.symbol, candle.timestamp, curr_rsi
            )
            self.enter_position(PositionSide.SHORT, candle)
