"""
Core data models and types for the crypto trading system.

This module defines the fundamental data structures used throughout
the trading system including candles, positions, trade records and
equity points.
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, Sequence, Tuple, Union
import json
import math
import time

import pandas as pd


TimestampLike = Union[int, float, str, datetime, pd.Timestamp]


class OrderSide(Enum):
    """Side of an order sent to an execution adapter."""
    BUY = "buy"
    SELL = "sell"

    @classmethod
    def parse(cls, value: Union[str, "OrderSide"]) -> "OrderSide":
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


class PositionSide(Enum):
    """
    Direction of an open position.

    Attributes:
        LONG: Bought first, profits when price rises
        SHORT: Sold first, profits when price falls
    """
    LONG = "long"
    SHORT = "short"

    @classmethod
    def parse(cls, value: Union[str, "PositionSide", OrderSide]) -> "PositionSide":
        """Accept long/short as well as the buy/sell order side that opens them."""
        if isinstance(value, cls):
            return value
        if isinstance(value, OrderSide):
            return cls.LONG if value is OrderSide.BUY else cls.SHORT
        text = str(value).lower()
        if text == "buy":
            return cls.LONG
        if text == "sell":
            return cls.SHORT
        return cls(text)

    @property
    def entry_side(self) -> OrderSide:
        """Order side that opens a position of this direction."""
        return OrderSide.BUY if self is PositionSide.LONG else OrderSide.SELL

    @property
    def exit_side(self) -> OrderSide:
        """Order side that closes a position of this direction."""
        return OrderSide.SELL if self is PositionSide.LONG else OrderSide.BUY


class OrderType(Enum):
    MARKET = "market"
    LIMIT = "limit"

    @classmethod
    def parse(cls, value: Union[str, "OrderType"]) -> "OrderType":
        if isinstance(value, cls):
            return value
        return cls(str(value).lower())


class IntentKind(Enum):
    """Why an order was submitted; stored in trade metadata."""
    ENTRY = "entry"
    EXIT = "exit"
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"


class ExitAction(Enum):
    """Exit triggered by the position monitor."""
    STOP_LOSS = "stop_loss"
    TAKE_PROFIT = "take_profit"

    @property
    def intent(self) -> IntentKind:
        return IntentKind(self.value)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def to_epoch_ms(value: TimestampLike) -> int:
    """
    Normalize a timestamp to epoch milliseconds.

    Integers and floats are taken to already be epoch milliseconds. Strings,
    datetimes and pandas timestamps are parsed; naive values are read as UTC.

    Args:
        value: Timestamp in any supported form

    Returns:
        Epoch milliseconds
    """
    if isinstance(value, bool):
        raise TypeError("Timestamp cannot be a boolean")
    if isinstance(value, (int, float)):
        return int(value)
    ts = pd.Timestamp(value)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return int(ts.timestamp() * 1000)


def split_symbol(symbol: str, default_quote: str = "USD") -> Tuple[str, str]:
    """Split 'BTC/USD' into ('BTC', 'USD'); a bare symbol gets the default quote."""
    if "/" in symbol:
        base, quote = symbol.split("/", 1)
        return base, quote
    return symbol, default_quote


@dataclass(frozen=True)
class Candle:
    """
    OHLCV candle data structure.

    Unlike most models here, construction does not validate the OHLC
    relationship: a replay has to be able to hold a malformed candle and
    reject it without aborting. Use ``is_valid()`` before evaluating it.

    Attributes:
        timestamp: Candle open time in epoch milliseconds
        open: Opening price
        high: Highest price during period
        low: Lowest price during period
        close: Closing price
        volume: Trading volume
    """
    timestamp: int
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0

    def is_valid(self) -> bool:
        """Check the OHLC invariant: low <= min(open, close), high >= max(open, close)."""
        prices = (self.open, self.high, self.low, self.close)
        if any(not math.isfinite(p) or p <= 0 for p in prices):
            return False
        if not math.isfinite(self.volume) or self.volume < 0:
            return False
        return self.low <= min(self.open, self.close) and self.high >= max(self.open, self.close)

    @classmethod
    def from_row(cls, row: Union[Sequence[Any], Dict[str, Any]]) -> "Candle":
        """
        Build a candle from a ``[timestamp, open, high, low, close, volume]``
        row or a mapping with those keys.
        """
        if isinstance(row, dict):
            return cls(
                timestamp=to_epoch_ms(row["timestamp"]),
                open=float(row["open"]),
                high=float(row["high"]),
                low=float(row["low"]),
                close=float(row["close"]),
                volume=float(row.get("volume", 0.0)),
            )
        timestamp, open_, high, low, close = row[:5]
        volume = row[5] if len(row) > 5 else 0.0
        return cls(
            timestamp=to_epoch_ms(timestamp),
            open=float(open_),
            high=float(high),
            low=float(low),
            close=float(close),
            volume=float(volume),
        )

    def to_row(self) -> list:
        return [self.timestamp, self.open, self.high, self.low, self.close, self.volume]

    def to_dict(self) -> Dict[str, Union[float, int]]:
        """Convert to dictionary."""
        return {
            "timestamp": self.timestamp,
            "open": self.open,
            "high": self.high,
            "low": self.low,
            "close": self.close,
            "volume": self.volume
        }


@dataclass
class Position:
    """
    An open position tracked by the position monitor.

    Attributes:
        symbol: Trading pair, e.g. 'BTC/USD'
        side: LONG or SHORT
        entry_price: Fill price of the entry order
        amount: Position size in base currency
        stop_loss_price: Exit price protecting capital
        take_profit_price: Exit price locking in profit
        opened_at: Entry timestamp (epoch ms)
    """
    symbol: str
    side: PositionSide
    entry_price: float
    amount: float
    stop_loss_price: float
    take_profit_price: float
    opened_at: Optional[int] = None

    def __post_init__(self):
        """Validate position parameters."""
        if self.entry_price <= 0:
            raise ValueError(f"Entry price must be positive, got {self.entry_price}")
        if self.amount <= 0:
            raise ValueError(f"Amount must be positive, got {self.amount}")

    @property
    def notional(self) -> float:
        """Exposure at entry price."""
        return self.amount * self.entry_price

    def unrealized_pnl(self, current_price: float) -> float:
        """
        Calculate unrealized P&L in quote currency (e.g., USD).

        Args:
            current_price: Current market price

        Returns:
            Unrealized profit/loss amount
        """
        if self.side is PositionSide.LONG:
            return (current_price - self.entry_price) * self.amount
        return (self.entry_price - current_price) * self.amount

    def check_stop_loss(self, current_price: float) -> bool:
        """True if the stop loss has been hit."""
        if self.side is PositionSide.LONG:
            return current_price <= self.stop_loss_price
        return current_price >= self.stop_loss_price

    def check_take_profit(self, current_price: float) -> bool:
        """True if the take profit has been hit."""
        if self.side is PositionSide.LONG:
            return current_price >= self.take_profit_price
        return current_price <= self.take_profit_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "side": self.side.value,
            "entry_price": self.entry_price,
            "amount": self.amount,
            "stop_loss_price": self.stop_loss_price,
            "take_profit_price": self.take_profit_price,
            "opened_at": self.opened_at,
        }


@dataclass(frozen=True)
class Trade:
    """
    Filled order record, appended to a run's trade log.

    Attributes:
        id: Unique id within the run (counter based)
        symbol: Trading pair
        side: BUY or SELL
        type: MARKET or LIMIT
        amount: Filled amount in base currency
        price: Fill price
        status: Order status ('closed' once filled)
        timestamp: Fill time (epoch ms)
        fee: Fee charged in quote currency
        metadata: Strategy name and intent kind
    """
    id: str
    symbol: str
    side: OrderSide
    type: OrderType
    amount: float
    price: float
    status: str
    timestamp: int
    fee: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Validate trade data."""
        if self.price <= 0:
            raise ValueError(f"Price must be positive, got {self.price}")
        if self.amount <= 0:
            raise ValueError(f"Amount must be positive, got {self.amount}")
        if self.fee < 0:
            raise ValueError(f"Fee must be non-negative, got {self.fee}")

    @property
    def notional(self) -> float:
        return self.amount * self.price

    @property
    def kind(self) -> Optional[str]:
        return self.metadata.get("kind")

    def to_dict(self) -> Dict[str, Any]:
        """Convert trade to dictionary."""
        return {
            "id": self.id,
            "symbol": self.symbol,
            "side": self.side.value,
            "type": self.type.value,
            "amount": self.amount,
            "price": self.price,
            "status": self.status,
            "timestamp": self.timestamp,
            "fee": self.fee,
            "metadata": dict(self.metadata),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2)


@dataclass(frozen=True)
class EquityPoint:
    """Cash balance after a processed candle."""
    timestamp: int
    balance: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp, "balance": self.balance}
