"""
Kraken API data ingestion module.
Fetches OHLCV candles and ticker prices from the public REST API.
"""
import requests
from typing import List, Optional, Dict, Any
import logging
import time

from core import Candle, TimestampLike, split_symbol, to_epoch_ms
from data.history import HistoricalDataSource, filter_range


logger = logging.getLogger(__name__)


class KrakenAPIError(Exception):
    """Kraken returned an error payload."""


class KrakenDataSource(HistoricalDataSource):
    """Unified data ingestion from Kraken API."""

    BASE_URL = "https://api.kraken.com/0/public"

    # Interval mapping (in minutes)
    INTERVALS = {
        "1m": 1,
        "5m": 5,
        "15m": 15,
        "30m": 30,
        "1h": 60,
        "4h": 240,
        "1d": 1440,
        "1w": 10080
    }

    # Kraken returns at most this many candles per request
    PAGE_SIZE = 720

    def __init__(self, session: Optional[requests.Session] = None, request_delay: float = 0.5):
        self.session = session or requests.Session()
        self.request_delay = request_delay

    @staticmethod
    def pair_for(symbol: str) -> str:
        """'BTC/USD' -> 'XBTUSD' (Kraken names bitcoin XBT)."""
        base, quote = split_symbol(symbol)
        if base == "BTC":
            base = "XBT"
        return f"{base}{quote}"

    def _get(self, endpoint: str, params: Dict[str, Any], timeout: int) -> Dict[str, Any]:
        response = self.session.get(f"{self.BASE_URL}/{endpoint}", params=params, timeout=timeout)
        response.raise_for_status()
        data = response.json()

        if data.get("error"):
            raise KrakenAPIError(f"Kraken API error: {data['error']}")

        return data["result"]

    def fetch_ohlcv(
        self,
        symbol: str,
        interval: str = "1h",
        since: Optional[int] = None,
        limit: Optional[int] = None
    ) -> List[Candle]:
        """
        Fetch OHLCV candles from Kraken.

        Args:
            symbol: Trading pair, e.g. 'BTC/USD'
            interval: Candle interval (1m, 5m, 15m, 30m, 1h, 4h, 1d, 1w)
            since: Starting timestamp in epoch ms (optional)
            limit: Maximum candles to return, newest kept (optional)

        Returns:
            List of candles, oldest first
        """
        if interval not in self.INTERVALS:
            raise ValueError(f"Invalid interval: {interval}")

        params = {
            "pair": self.pair_for(symbol),
            "interval": self.INTERVALS[interval]
        }
        if since is not None:
            params["since"] = since // 1000

        result = self._get("OHLC", params, timeout=30)
        result_key = next(key for key in result if key != "last")

        candles = []
        for row in result[result_key]:
            # Kraken format: [time(s), open, high, low, close, vwap, volume, count]
            candles.append(Candle(
                timestamp=int(row[0]) * 1000,
                open=float(row[1]),
                high=float(row[2]),
                low=float(row[3]),
                close=float(row[4]),
                volume=float(row[6])
            ))

        if limit:
            candles = candles[-limit:]

        return candles

    def load(self, symbol: str, timeframe: str, start: TimestampLike, end: TimestampLike) -> List[Candle]:
        """Page through OHLC requests until ``end`` is covered."""
        start_ms = to_epoch_ms(start)
        end_ms = to_epoch_ms(end)
        interval_ms = self.INTERVALS[timeframe] * 60 * 1000

        collected: Dict[int, Candle] = {}
        since = start_ms
        while since <= end_ms:
            candles = self.fetch_ohlcv(symbol, interval=timeframe, since=since)
            if not candles:
                break

            for candle in candles:
                collected[candle.timestamp] = candle

            since = candles[-1].timestamp + interval_ms
            if len(candles) < self.PAGE_SIZE:
                break

            # Rate limiting
            time.sleep(self.request_delay)

        candles = filter_range(collected.values(), start_ms, end_ms)
        logger.info("Fetched %d %s %s candles from Kraken", len(candles), symbol, timeframe)
        return candles

    def get_ticker(self, symbol: str) -> Dict[str, Any]:
        """Get current ticker for a symbol."""
        result = self._get("Ticker", {"pair": self.pair_for(symbol)}, timeout=10)
        result_key = list(result.keys())[0]
        return result[result_key]

    def get_current_price(self, symbol: str) -> float:
        """Get current market price (last trade close)."""
        ticker = self.get_ticker(symbol)
        return float(ticker["c"][0])
