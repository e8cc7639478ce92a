"""
Backtesting engine for strategy performance evaluation.

The engine is a small state machine::

    uninitialized -> loaded -> running -> completed
                       |          |
                       +--> failed <--+

Each engine owns its ledger, risk gate, position monitor, execution
adapter and strategy, so independent runs never share mutable state.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from backtest.metrics import PerformanceMetrics, calculate_all
from config.manager import BacktestConfig, RiskConfig, StrategyConfig
from core import Candle, EquityPoint, Trade, TimestampLike, split_symbol, to_epoch_ms
from data.history import HistoricalDataSource
from errors import BacktestStateError, ConfigurationError
from execution import SimulatedExecution
from ledger import Ledger
from monitor import PositionMonitor
from risk import RiskGate
from strategies import get_strategy
from strategies.base import BaseStrategy


logger = logging.getLogger(__name__)


class BacktestState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class BacktestResult:
    """Results from a backtest run."""
    strategy_name: str
    symbol: str
    timeframe: str
    start_date: int
    end_date: int
    metrics: PerformanceMetrics
    equity_curve: List[EquityPoint] = field(default_factory=list)
    trades: List[Trade] = field(default_factory=list)
    candles_processed: int = 0
    stopped_early: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy_name": self.strategy_name,
            "symbol": self.symbol,
            "timeframe": self.timeframe,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "candles_processed": self.candles_processed,
            "stopped_early": self.stopped_early,
            "metrics": self.metrics.to_dict(),
        }

    def summary(self) -> str:
        """Generate human-readable summary."""
        m = self.metrics
        start = datetime.fromtimestamp(self.start_date / 1000, tz=timezone.utc).date()
        end = datetime.fromtimestamp(self.end_date / 1000, tz=timezone.utc).date()
        return f"""
{'='*60}
Backtest Results: {self.strategy_name} on {self.symbol} ({self.timeframe})
{'='*60}
Period: {start} to {end} ({self.candles_processed} candles{', stopped early' if self.stopped_early else ''})
Initial Capital: ${m.initial_capital:,.2f}
Final Capital: ${m.final_capital:,.2f}
Total Return: {m.total_return * 100:+.2f}%

Trades:
  Orders: {m.total_trades}
  Closed: {m.closed_trades}
  Winning: {m.winning_trades}
  Losing: {m.losing_trades}
  Win Rate: {m.win_rate * 100:.1f}%
  Fees: ${m.total_fees:,.2f}

Risk Metrics:
  Profit Factor: {m.profit_factor:.2f}
  Max Drawdown: {m.max_drawdown * 100:.2f}%
  Sharpe Ratio: {m.sharpe_ratio:.4f}
{'='*60}
"""


class BacktestEngine:
    """
    Replay historical candles through a strategy.

    Example:
        >>> engine = BacktestEngine(JsonFileDataSource("data"))
        >>> engine.initialize("BTC/USD", "1h", "RSI_EMA_Confluence", config,
        ...                   "2024-01-01", "2024-03-31")
        >>> result = engine.run()
        >>> print(result.summary())
    """

    def __init__(
        self,
        data_source: HistoricalDataSource,
        risk_config: Optional[RiskConfig] = None,
        backtest_config: Optional[BacktestConfig] = None
    ):
        self.data_source = data_source
        self.risk_config = risk_config or RiskConfig()
        self.backtest_config = backtest_config or BacktestConfig()
        self.state = BacktestState.UNINITIALIZED

        self.symbol: Optional[str] = None
        self.timeframe: Optional[str] = None
        self.start_date: Optional[int] = None
        self.end_date: Optional[int] = None
        self.candles: List[Candle] = []
        self.ledger: Optional[Ledger] = None
        self.monitor: Optional[PositionMonitor] = None
        self.execution: Optional[SimulatedExecution] = None
        self.strategy: Optional[BaseStrategy] = None
        self.equity_curve: List[EquityPoint] = []
        self.result: Optional[BacktestResult] = None
        self._stop_requested = False

    def _fail(self, error: Exception) -> None:
        self.state = BacktestState.FAILED
        logger.error("Backtest failed: %s", error)

    def initialize(
        self,
        symbol: str,
        timeframe: str,
        strategy_name: str,
        strategy_config: StrategyConfig,
        start_date: Optional[TimestampLike],
        end_date: Optional[TimestampLike]
    ) -> None:
        """
        Load historical data and build the run's components.

        Args:
            symbol: Trading pair, e.g. 'BTC/USD'
            timeframe: Candle interval, e.g. '1h'
            strategy_name: Registered strategy name
            strategy_config: Strategy configuration
            start_date: Range start, inclusive
            end_date: Range end, inclusive

        Raises:
            ConfigurationError: Missing date range, unknown strategy or no candles
            BacktestStateError: If a run is in progress
        """
        if self.state is BacktestState.RUNNING:
            raise BacktestStateError("Cannot initialize while a backtest is running")

        logger.info(
            "Initializing backtester for %s with %s strategy from %s to %s",
            symbol, strategy_name, start_date, end_date
        )
        try:
            if start_date is None or end_date is None:
                raise ConfigurationError("Backtest requires both a start and an end date")
            start_ms = to_epoch_ms(start_date)
            end_ms = to_epoch_ms(end_date)
            if start_ms > end_ms:
                raise ConfigurationError(f"Backtest start {start_date} is after end {end_date}")

            candles = self.data_source.load(symbol, timeframe, start_ms, end_ms)
            if not candles:
                raise ConfigurationError(
                    f"No historical data for {symbol} {timeframe} between {start_date} and {end_date}"
                )
            candles = sorted(candles, key=lambda c: c.timestamp)

            risk_gate = RiskGate(self.risk_config)
            quote = split_symbol(symbol, self.backtest_config.quote_asset)[1]
            ledger = Ledger.seeded(self.backtest_config.initial_capital, quote)
            monitor = PositionMonitor(risk_gate)
            execution = SimulatedExecution(
                ledger,
                risk_gate,
                fee_rate=self.backtest_config.fee_rate,
                quote_asset=quote,
            )
            strategy = get_strategy(strategy_name, symbol, strategy_config, execution, monitor)
            strategy.initialize()
        except Exception as e:
            self._fail(e)
            raise

        self.symbol = symbol
        self.timeframe = timeframe
        self.start_date = start_ms
        self.end_date = end_ms
        self.candles = candles
        self.ledger = ledger
        self.monitor = monitor
        self.execution = execution
        self.strategy = strategy
        self.equity_curve = []
        self.result = None
        self._stop_requested = False
        self.state = BacktestState.LOADED

        logger.info("Loaded %d historical candles for backtesting", len(candles))

    def stop(self) -> None:
        """Ask a running replay to stop after the current candle."""
        self._stop_requested = True

    @property
    def cash(self) -> float:
        return self.execution.cash_balance(self.symbol)

    def run(self) -> BacktestResult:
        """
        Run the backtest simulation.

        Returns:
            BacktestResult with performance metrics

        Raises:
            BacktestStateError: If the engine is not loaded
        """
        if self.state is not BacktestState.LOADED:
            raise BacktestStateError(f"Backtest must be loaded before run(), state is {self.state.value}")

        self.state = BacktestState.RUNNING
        logger.info("Starting backtest simulation over %d candles", len(self.candles))

        processed = 0
        try:
            for candle in self.candles:
                if self._stop_requested:
                    logger.info("Stop requested, ending replay after %d candles", processed)
                    break
                self._process_candle(candle)
                processed += 1
        except Exception as e:
            self._fail(e)
            raise

        metrics = calculate_all(
            self.backtest_config.initial_capital,
            self.cash,
            self.execution.trades,
            self.equity_curve,
            risk_free_rate=self.backtest_config.risk_free_rate,
        )
        self.result = BacktestResult(
            strategy_name=self.strategy.name,
            symbol=self.symbol,
            timeframe=self.timeframe,
            start_date=self.start_date,
            end_date=self.end_date,
            metrics=metrics,
            equity_curve=list(self.equity_curve),
            trades=list(self.execution.trades),
            candles_processed=processed,
            stopped_early=processed < len(self.candles),
        )
        self.state = BacktestState.COMPLETED

        logger.info(
            "Backtest finished: return %.2f%%, %d trades, max drawdown %.2f%%",
            metrics.total_return * 100, metrics.total_trades, metrics.max_drawdown * 100
        )
        return self.result

    def _process_candle(self, candle: Candle) -> None:
        """Exit check, strategy step, equity point, in that order."""
        self.execution.set_candle(candle)

        if candle.is_valid():
            self.monitor.exit_if_triggered(self.symbol, candle.close, self.execution, self.strategy.name)
        else:
            logger.warning("Invalid candle for %s at %s skipped", self.symbol, candle.timestamp)

        self.strategy.run(candle)

        self.equity_curve.append(EquityPoint(timestamp=candle.timestamp, balance=self.cash))
