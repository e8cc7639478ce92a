"""
Technical indicators over plain numeric sequences.

Every function takes an ordered sequence of prices (oldest first) and
returns an ordered list that is shorter than the input by the indicator's
warm-up length. Too little data gives an empty list.

    sma / ema / bollinger_bands   len(values) - period + 1
    rsi                           len(values) - period
    macd                          len(values) - slow - signal + 2
"""
import logging
from typing import Dict, List, Sequence

import pandas as pd


logger = logging.getLogger(__name__)


def _as_series(values: Sequence[float]) -> pd.Series:
    return pd.Series(list(values), dtype=float)


def _check_period(period: int, name: str = "period") -> None:
    if period < 1:
        raise ValueError(f"{name} must be >= 1, got {period}")


def _seeded(series: pd.Series, period: int) -> pd.Series:
    """Replace the first ``period`` values with their mean, as smoothing seed."""
    seed = pd.Series([series.iloc[:period].mean()])
    return pd.concat([seed, series.iloc[period:]], ignore_index=True)


def sma(values: Sequence[float], period: int) -> List[float]:
    """
    Calculate simple moving average.

    Args:
        values: Price series data
        period: SMA lookback period

    Returns:
        SMA values, one per full window
    """
    _check_period(period)
    series = _as_series(values)
    if len(series) < period:
        logger.debug("Not enough data to calculate SMA (need %d, got %d)", period, len(series))
        return []
    return series.rolling(window=period).mean().iloc[period - 1:].tolist()


def ema(values: Sequence[float], period: int) -> List[float]:
    """
    Calculate exponential moving average.

    The first value is the SMA of the first ``period`` prices, then the
    usual recursion with alpha = 2 / (period + 1).

    Args:
        values: Price series data
        period: EMA lookback period

    Returns:
        EMA values
    """
    _check_period(period)
    series = _as_series(values)
    if len(series) < period:
        logger.debug("Not enough data to calculate EMA (need %d, got %d)", period, len(series))
        return []
    return _seeded(series, period).ewm(span=period, adjust=False).mean().tolist()


def _wilder(series: pd.Series, period: int) -> pd.Series:
    return _seeded(series, period).ewm(alpha=1.0 / period, adjust=False).mean()


def rsi(values: Sequence[float], period: int = 14) -> List[float]:
    """
    Calculate Relative Strength Index (RSI) with Wilder smoothing.

    A window with gains and no losses gives 100; a flat window (no gains,
    no losses) gives NaN.

    Args:
        values: Price series data
        period: RSI lookback period (default: 14)

    Returns:
        RSI values (0-100)
    """
    _check_period(period)
    series = _as_series(values)
    if len(series) <= period:
        logger.debug("Not enough data to calculate RSI (need %d, got %d)", period + 1, len(series))
        return []

    delta = series.diff().iloc[1:].reset_index(drop=True)
    avg_gain = _wilder(delta.clip(lower=0), period)
    avg_loss = _wilder((-delta).clip(lower=0), period)

    rs = avg_gain / avg_loss
    return (100 - (100 / (1 + rs))).tolist()


def macd(
    values: Sequence[float],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9
) -> List[Dict[str, float]]:
    """
    Calculate MACD (Moving Average Convergence Divergence).

    Args:
        values: Price series data
        fast_period: Fast EMA period (default: 12)
        slow_period: Slow EMA period (default: 26)
        signal_period: Signal line period (default: 9)

    Returns:
        List of {"macd", "signal", "histogram"} dicts
    """
    _check_period(fast_period, "fast_period")
    _check_period(slow_period, "slow_period")
    _check_period(signal_period, "signal_period")
    if fast_period >= slow_period:
        raise ValueError(f"fast_period ({fast_period}) must be < slow_period ({slow_period})")

    min_required = slow_period + signal_period - 1
    if len(values) < min_required:
        logger.debug("Not enough data to calculate MACD (need %d, got %d)", min_required, len(values))
        return []

    fast = ema(values, fast_period)[slow_period - fast_period:]
    slow = ema(values, slow_period)
    macd_line = [f - s for f, s in zip(fast, slow)]
    signal_line = ema(macd_line, signal_period)
    macd_line = macd_line[signal_period - 1:]

    return [
        {"macd": m, "signal": s, "histogram": m - s}
        for m, s in zip(macd_line, signal_line)
    ]


def bollinger_bands(
    values: Sequence[float],
    period: int = 20,
    std_dev: float = 2.0
) -> List[Dict[str, float]]:
    """
    Calculate Bollinger Bands.

    Middle band is the SMA; outer bands are SMA +/- ``std_dev`` population
    standard deviations.

    Returns:
        List of {"upper", "middle", "lower"} dicts
    """
    _check_period(period)
    series = _as_series(values)
    if len(series) < period:
        logger.debug("Not enough data to calculate Bollinger Bands (need %d, got %d)", period, len(series))
        return []

    middle = series.rolling(window=period).mean().iloc[period - 1:]
    std = series.rolling(window=period).std(ddof=0).iloc[period - 1:]
    upper = middle + std * std_dev
    lower = middle - std * std_dev

    return [
        {"upper": u, "middle": m, "lower": l}
        for u, m, l in zip(upper.tolist(), middle.tolist(), lower.tolist())
    ]
