import pytest

from core import Candle, OrderSide, OrderType
from execution import PaperExecution, SimulatedExecution
from ledger import Ledger


CANDLE = Candle(1_700_000_000_000, 49000, 50500, 48500, 50000, 12.5)


@pytest.fixture
def bound(execution):
    execution.set_candle(CANDLE)
    return execution


def test_buy_sized_by_risk_gate(bound, ledger):
    trade = bound.execute_trade("BTC/USD", "buy", None, "market", {"strategy": "test", "kind": "entry"})

    assert trade is not None
    assert trade.id == "bt-000001"
    assert trade.side is OrderSide.BUY
    assert trade.type is OrderType.MARKET
    assert trade.amount == pytest.approx(0.004)
    assert trade.price == 50000
    assert trade.timestamp == CANDLE.timestamp
    assert trade.fee == pytest.approx(0.2)
    assert trade.kind == "entry"
    assert ledger.balance("USD") == pytest.approx(9800)
    assert ledger.balance("BTC") == pytest.approx(0.004)
    assert bound.trades == [trade]


def test_ids_are_sequential(bound):
    first = bound.execute_trade("BTC/USD", "buy", 0.01)
    second = bound.execute_trade("BTC/USD", "sell", 0.01)
    assert (first.id, second.id) == ("bt-000001", "bt-000002")


def test_explicit_price_overrides_close(bound, ledger):
    trade = bound.execute_trade("BTC/USD", "buy", 0.01, price=40000)
    assert trade.price == 40000
    assert ledger.balance("USD") == pytest.approx(9600)


def test_non_positive_explicit_price_is_rejected(bound, ledger):
    assert bound.execute_trade("BTC/USD", "buy", 0.01, price=0) is None
    assert bound.execute_trade("BTC/USD", "buy", 0.01, price=-50000) is None
    assert bound.execute_trade("BTC/USD", "buy", None, price=0) is None
    assert bound.trades == []
    assert ledger.snapshot() == {"USD": 10000.0}


def test_sell_without_holdings_is_rejected(bound, ledger):
    assert bound.execute_trade("BTC/USD", "sell", 0.1) is None
    assert bound.trades == []
    assert ledger.snapshot() == {"USD": 10000.0}


def test_buy_beyond_cash_is_rejected(bound, ledger):
    assert bound.execute_trade("BTC/USD", "buy", 1) is None
    assert ledger.snapshot() == {"USD": 10000.0}


def test_non_positive_amount_is_rejected(bound):
    assert bound.execute_trade("BTC/USD", "buy", 0) is None
    assert bound.execute_trade("BTC/USD", "buy", -1) is None
    assert bound.trades == []


def test_balance_below_minimum_sizes_to_nothing(default_gate):
    execution = SimulatedExecution(Ledger.seeded(50), default_gate)
    execution.set_candle(CANDLE)
    assert execution.execute_trade("BTC/USD", "buy", None) is None


def test_limit_order_requires_price(bound):
    assert bound.execute_trade("BTC/USD", "buy", 0.01, OrderType.LIMIT) is None
    trade = bound.execute_trade("BTC/USD", "buy", 0.01, OrderType.LIMIT, price=49000)
    assert trade.type is OrderType.LIMIT


def test_no_candle_no_trade(execution):
    assert execution.execute_trade("BTC/USD", "buy", 0.01) is None


def test_cash_balance_uses_symbol_quote(default_gate):
    ledger = Ledger({"USD": 1.0, "EUR": 2.0})
    execution = SimulatedExecution(ledger, default_gate)
    assert execution.cash_balance() == 1.0
    assert execution.cash_balance("BTC/EUR") == 2.0


def test_paper_execution_uses_price_source(default_gate):
    ledger = Ledger.seeded(10000)
    execution = PaperExecution(ledger, default_gate, lambda symbol: 25000.0)

    trade = execution.execute_trade("BTC/USD", "buy", None)

    assert trade.id == "paper-000001"
    assert trade.price == 25000.0
    assert trade.amount == pytest.approx(0.008)
    assert trade.timestamp > 0
