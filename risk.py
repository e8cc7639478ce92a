"""
Risk gate: position sizing and trade validation rules.

Every method is a pure function of its arguments and the run-scoped
RiskConfig the gate was built with. Arithmetic edge cases (zero price,
zero balance) resolve to defined values instead of raising, so a bad tick
can never abort a replay.
"""
import logging
import math
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import numpy as np

from config.manager import RiskConfig
from core import OrderSide, Position, PositionSide, now_ms


logger = logging.getLogger(__name__)

# Policy constants
MIN_TRADE_VALUE = 10.0
SMALL_ACCOUNT_BALANCE = 1000.0
SMALL_ACCOUNT_MAX_TRADES = 1
MEDIUM_ACCOUNT_BALANCE = 5000.0
MEDIUM_ACCOUNT_MAX_TRADES = 2
VOLATILITY_MULTIPLIER = 10.0
MIN_VOLATILITY_FACTOR = 0.5

SideLike = Union[str, OrderSide, PositionSide]


class RiskGate:
    """
    Risk management calculations for a single run.

    Attributes:
        config: Immutable risk thresholds

    Example:
        >>> gate = RiskGate(RiskConfig(max_risk_per_trade=0.02))
        >>> gate.calculate_lot_size("BTC/USD", 50000, 10000)
        0.004
    """

    def __init__(self, config: Optional[RiskConfig] = None):
        self.config = config or RiskConfig()

    def calculate_lot_size(
        self,
        symbol: str,
        current_price: float,
        account_balance: float,
        risk_percentage: Optional[float] = None
    ) -> float:
        """
        Calculate the amount of base currency to trade.

        Args:
            symbol: Trading pair
            current_price: Current market price
            account_balance: Available quote balance
            risk_percentage: Fraction of balance to commit (default: max_risk_per_trade)

        Returns:
            Lot size, never negative. 0 when the balance is below the minimum
            or the price is not positive.
        """
        if account_balance < self.config.minimum_balance:
            logger.warning(
                "Account balance %.2f below minimum %.2f, no lot for %s",
                account_balance, self.config.minimum_balance, symbol
            )
            return 0.0

        if not current_price or current_price <= 0 or not math.isfinite(current_price):
            logger.warning("Cannot size %s at non-positive price %s", symbol, current_price)
            return 0.0

        risk = self.config.max_risk_per_trade if risk_percentage is None else risk_percentage
        risk_amount = account_balance * risk
        max_trade_value = account_balance * self.config.max_risk_per_trade
        lot_size = min(risk_amount, max_trade_value) / current_price

        logger.debug(
            "Calculated lot size for %s: %.8f (price=%s balance=%s risk=%s)",
            symbol, lot_size, current_price, account_balance, risk
        )
        return max(0.0, lot_size)

    def validate_trade(
        self,
        symbol: str,
        amount: float,
        price: float,
        account_balance: float
    ) -> bool:
        """
        Check a proposed trade against the per-trade limits.

        Rejected when its value exceeds max_risk_per_trade of the balance,
        when the balance is below minimum_balance, or when the value is
        under MIN_TRADE_VALUE.

        Returns:
            True if the trade passes every check
        """
        trade_value = amount * price
        valid = True

        if account_balance > 0:
            risk_ratio = trade_value / account_balance
        else:
            risk_ratio = math.inf if trade_value > 0 else 0.0
        if risk_ratio > self.config.max_risk_per_trade:
            logger.warning(
                "%s trade exceeds max risk per trade: %.4f > %s",
                symbol, risk_ratio, self.config.max_risk_per_trade
            )
            valid = False

        if account_balance < self.config.minimum_balance:
            logger.warning(
                "%s account balance below minimum: %.2f < %.2f",
                symbol, account_balance, self.config.minimum_balance
            )
            valid = False

        if trade_value < MIN_TRADE_VALUE:
            logger.warning("%s trade value too small: %.2f < %.2f", symbol, trade_value, MIN_TRADE_VALUE)
            valid = False

        return valid

    def calculate_stop_loss(
        self,
        entry_price: float,
        side: SideLike,
        stop_loss_percentage: Optional[float] = None
    ) -> float:
        """Stop below entry for longs (buy), above entry for shorts (sell)."""
        pct = self.config.stop_loss_percentage if stop_loss_percentage is None else stop_loss_percentage
        if PositionSide.parse(side) is PositionSide.LONG:
            return entry_price * (1 - pct)
        return entry_price * (1 + pct)

    def calculate_take_profit(
        self,
        entry_price: float,
        side: SideLike,
        take_profit_percentage: Optional[float] = None
    ) -> float:
        """Target above entry for longs (buy), below entry for shorts (sell)."""
        pct = self.config.take_profit_percentage if take_profit_percentage is None else take_profit_percentage
        if PositionSide.parse(side) is PositionSide.LONG:
            return entry_price * (1 + pct)
        return entry_price * (1 - pct)

    def check_total_risk(
        self,
        open_positions: Iterable[Union[Position, Mapping[str, Any]]],
        account_balance: float
    ) -> bool:
        """
        Check that combined exposure stays within max_total_risk.

        Args:
            open_positions: Positions, or mappings with 'amount' and 'price'
            account_balance: Current account balance

        Returns:
            True if total exposure / balance <= max_total_risk
        """
        total_exposure = sum(_exposure(position) for position in open_positions)

        if account_balance <= 0:
            return total_exposure <= 0

        total_risk = total_exposure / account_balance
        if total_risk > self.config.max_total_risk:
            logger.warning(
                "Total portfolio risk exceeds maximum: %.4f > %s",
                total_risk, self.config.max_total_risk
            )
            return False
        return True

    def get_max_concurrent_trades(self, account_balance: float) -> int:
        """Configured limit, reduced for small accounts."""
        max_trades = self.config.max_concurrent_trades

        if account_balance < SMALL_ACCOUNT_BALANCE:
            max_trades = min(max_trades, SMALL_ACCOUNT_MAX_TRADES)
        elif account_balance < MEDIUM_ACCOUNT_BALANCE:
            max_trades = min(max_trades, MEDIUM_ACCOUNT_MAX_TRADES)

        return max_trades

    def adjust_position_for_volatility(
        self,
        price_history: Sequence[float],
        base_position_size: float
    ) -> float:
        """
        Shrink a position size when recent returns are volatile.

        Volatility is the population standard deviation of period-over-period
        returns. The size is scaled by max(0.5, 1 - volatility * 10).

        Args:
            price_history: Ordered prices, oldest first
            base_position_size: Unadjusted size

        Returns:
            Adjusted size between 0.5x and 1x the base
        """
        prices = np.asarray(price_history, dtype=float)
        if prices.size < 2:
            return base_position_size
        if np.any(prices[:-1] == 0):
            logger.warning("Zero price in history, volatility adjustment skipped")
            return base_position_size

        returns = np.diff(prices) / prices[:-1]
        volatility = float(np.sqrt(np.mean((returns - returns.mean()) ** 2)))
        factor = max(MIN_VOLATILITY_FACTOR, 1 - volatility * VOLATILITY_MULTIPLIER)

        logger.debug("Volatility %.6f, position factor %.4f", volatility, factor)
        return base_position_size * factor

    def validate_cooldown(
        self,
        last_trade_time: int,
        cooldown_period: Optional[int] = None,
        now: Optional[int] = None
    ) -> bool:
        """
        Check that enough time has passed since the last trade.

        Args:
            last_trade_time: Epoch ms of the last trade
            cooldown_period: Milliseconds to wait (default: config cooldown_period)
            now: Reference time in epoch ms (default: wall clock). Replays pass
                the candle timestamp.

        Returns:
            True if the cooldown has elapsed; always True for a zero cooldown
        """
        cooldown = self.config.cooldown_period if cooldown_period is None else cooldown_period
        if cooldown <= 0:
            return True
        reference = now_ms() if now is None else now
        return reference - last_trade_time >= cooldown


def _exposure(position: Union[Position, Mapping[str, Any]]) -> float:
    if isinstance(position, Position):
        return position.notional
    return float(position["amount"]) * float(position["price"])
