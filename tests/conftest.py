import sys
from pathlib import Path

import pytest

# Project root on sys.path so tests import the top-level modules directly
ROOT = Path(__file__).resolve().parents[1]
root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from config.manager import RiskConfig, StrategyConfig  # noqa: E402
from core import Candle  # noqa: E402
from execution import SimulatedExecution  # noqa: E402
from ledger import Ledger  # noqa: E402
from monitor import PositionMonitor  # noqa: E402
from risk import RiskGate  # noqa: E402


START_TS = 1_700_000_000_000
HOUR_MS = 3_600_000


def make_candles(closes, start=START_TS, step=HOUR_MS):
    """Candles that open at the previous close, with high/low hugging the body."""
    candles = []
    prev = closes[0]
    for i, close in enumerate(closes):
        candles.append(Candle(
            timestamp=start + i * step,
            open=prev,
            high=max(prev, close),
            low=min(prev, close),
            close=close,
            volume=1.0,
        ))
        prev = close
    return candles


def confluence_closes():
    """
    Long decline, one jump candle, then a climb.

    With RSI 14 / EMA 9 / EMA 21 the jump candle crosses RSI up through 30
    and the fast EMA over the slow one; the climb reaches a 4% target.
    """
    falling = [100.0 - i for i in range(60)]
    return falling + [120.0] + [121.0 + i for i in range(20)]


@pytest.fixture
def risk_config():
    return RiskConfig(
        max_risk_per_trade=0.5,
        max_total_risk=0.5,
        stop_loss_percentage=0.05,
        take_profit_percentage=0.15,
        minimum_balance=100,
        max_concurrent_trades=3,
    )


@pytest.fixture
def gate(risk_config):
    return RiskGate(risk_config)


@pytest.fixture
def default_gate():
    return RiskGate(RiskConfig())


@pytest.fixture
def ledger():
    return Ledger.seeded(10000.0, "USD")


@pytest.fixture
def execution(ledger, default_gate):
    return SimulatedExecution(ledger, default_gate)


@pytest.fixture
def monitor(default_gate):
    return PositionMonitor(default_gate)


@pytest.fixture
def rsi_ema_config():
    return StrategyConfig(
        name="RSI_EMA_Confluence",
        params={
            "rsi_period": 14,
            "fast_ema_period": 9,
            "slow_ema_period": 21,
            "rsi_oversold": 30,
            "rsi_overbought": 70,
        },
    )
