from backtest.engine import BacktestEngine, BacktestResult, BacktestState
from backtest.metrics import ClosedTrade, PerformanceMetrics, calculate_all, pair_trades

__all__ = [
    "BacktestEngine",
    "BacktestResult",
    "BacktestState",
    "ClosedTrade",
    "PerformanceMetrics",
    "calculate_all",
    "pair_trades",
]
