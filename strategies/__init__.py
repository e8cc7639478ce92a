"""
Strategy registry for easy access to all strategies.
"""
from typing import Optional, Sequence

from strategies.base import BaseStrategy
from strategies.macd_cross import MacdCrossStrategy
from strategies.rsi_ema_confluence import RsiEmaConfluenceStrategy
from config.manager import StrategyConfig
from core import Candle
from errors import ConfigurationError
from execution import ExecutionService
from monitor import PositionMonitor


STRATEGY_MAP = {
    "rsi_ema_confluence": RsiEmaConfluenceStrategy,
    "rsi_ema": RsiEmaConfluenceStrategy,
    "macd_cross": MacdCrossStrategy,
    "macd": MacdCrossStrategy,
}


def get_strategy_class(name: str) -> type:
    """
    Look up a strategy class by name (case-insensitive).

    Raises:
        ConfigurationError: If no strategy is registered under the name
    """
    name_lower = name.lower()

    if name_lower not in STRATEGY_MAP:
        raise ConfigurationError(f"Unknown strategy: {name}. Available: {list_strategies()}")

    return STRATEGY_MAP[name_lower]


def get_strategy(
    name: str,
    symbol: str,
    config: StrategyConfig,
    execution: ExecutionService,
    monitor: PositionMonitor,
    warmup: Optional[Sequence[Candle]] = None
) -> BaseStrategy:
    """
    Get a strategy instance by name.

    Args:
        name: Strategy name (e.g., 'RSI_EMA_Confluence', 'macd')
        symbol: Trading pair
        config: Strategy configuration
        execution: Execution adapter the strategy submits orders to
        monitor: Position monitor for the run
        warmup: Optional candles to preload on initialize()

    Returns:
        Strategy instance
    """
    strategy_class = get_strategy_class(name)
    return strategy_class(symbol, config, execution, monitor, warmup=warmup)


def list_strategies() -> list:
    """List the canonical names of all registered strategies."""
    return sorted({cls.name for cls in STRATEGY_MAP.values()})


__all__ = [
    "BaseStrategy",
    "MacdCrossStrategy",
    "RsiEmaConfluenceStrategy",
    "STRATEGY_MAP",
    "get_strategy",
    "get_strategy_class",
    "list_strategies",
]
