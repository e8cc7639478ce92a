"""
Exception types shared by the trading system.

Configuration errors are fatal to a backtest run. Balance and position
errors are raised by the ledger and monitor and turned into no-op results by
the execution layer.
"""


class TradingError(Exception):
    """Base class for all trading system errors."""


class ConfigurationError(TradingError, ValueError):
    """Invalid or missing configuration (bad thresholds, unknown strategy, empty data)."""


class InsufficientBalanceError(TradingError):
    """A ledger mutation would leave an asset balance below zero."""

    def __init__(self, asset: str, available: float, required: float):
        self.asset = asset
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient {asset} balance: available {available:.8f}, required {required:.8f}"
        )


class PositionAlreadyOpenError(TradingError):
    """A position is already open for the symbol."""

    def __init__(self, symbol: str):
        self.symbol = symbol
        super().__init__(f"Position already open for {symbol}")


class BacktestStateError(TradingError, RuntimeError):
    """A backtest operation was called in the wrong state."""
