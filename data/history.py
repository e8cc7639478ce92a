"""
Historical candle sources for backtesting.

A source returns the candles of one symbol/timeframe inside an inclusive
date range, sorted by timestamp. The backtest engine treats it as
read-only and does not check its consistency beyond the candle invariant.
"""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Union

from core import Candle, TimestampLike, to_epoch_ms


logger = logging.getLogger(__name__)


def filter_range(candles: Iterable[Candle], start: TimestampLike, end: TimestampLike) -> List[Candle]:
    """Candles with start <= timestamp <= end, oldest first."""
    start_ms = to_epoch_ms(start)
    end_ms = to_epoch_ms(end)
    selected = [c for c in candles if start_ms <= c.timestamp <= end_ms]
    return sorted(selected, key=lambda c: c.timestamp)


class HistoricalDataSource(ABC):
    """Provider of historical OHLCV candles."""

    @abstractmethod
    def load(
        self,
        symbol: str,
        timeframe: str,
        start: TimestampLike,
        end: TimestampLike
    ) -> List[Candle]:
        """
        Load candles for ``[start, end]`` inclusive.

        Args:
            symbol: Trading pair, e.g. 'BTC/USD'
            timeframe: Candle interval, e.g. '1h'
            start: Range start (epoch ms, ISO string or datetime)
            end: Range end (inclusive)

        Returns:
            Candles sorted ascending by timestamp
        """


class InMemoryDataSource(HistoricalDataSource):
    """Serve one candle list already held in memory, whatever the symbol."""

    def __init__(self, candles: Iterable[Candle]):
        self.candles = list(candles)

    def load(self, symbol, timeframe, start, end) -> List[Candle]:
        return filter_range(self.candles, start, end)


class JsonFileDataSource(HistoricalDataSource):
    """
    Read candles from ``<data_dir>/<BASE>_<QUOTE>_<timeframe>.json``.

    Files hold a JSON array of ``[timestamp, open, high, low, close, volume]``
    rows (timestamps in epoch ms) or of objects with those keys.
    """

    def __init__(self, data_dir: Union[str, Path] = "data"):
        self.data_dir = Path(data_dir)

    def path_for(self, symbol: str, timeframe: str) -> Path:
        return self.data_dir / f"{symbol.replace('/', '_')}_{timeframe}.json"

    def load(self, symbol, timeframe, start, end) -> List[Candle]:
        path = self.path_for(symbol, timeframe)
        if not path.exists():
            raise FileNotFoundError(f"Historical data file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            rows = json.load(f)

        candles = filter_range((Candle.from_row(row) for row in rows), start, end)
        logger.info("Loaded %d historical candles from %s", len(candles), path)
        return candles

    def save(self, symbol: str, timeframe: str, candles: Iterable[Candle]) -> Path:
        """Write candles as rows, merging with what the file already holds."""
        path = self.path_for(symbol, timeframe)
        path.parent.mkdir(parents=True, exist_ok=True)

        merged = {}
        if path.exists():
            with open(path, "r", encoding="utf-8") as f:
                for row in json.load(f):
                    candle = Candle.from_row(row)
                    merged[candle.timestamp] = candle
        for candle in candles:
            merged[candle.timestamp] = candle

        with open(path, "w", encoding="utf-8") as f:
            json.dump([merged[ts].to_row() for ts in sorted(merged)], f)

        logger.info("Saved %d candles to %s", len(merged), path)
        return path
