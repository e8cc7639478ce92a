import pytest

from core import Position, PositionSide
from risk import RiskGate


def test_lot_size_below_minimum_balance_is_zero(gate):
    for balance in (0, 1, 50, 99.99):
        assert gate.calculate_lot_size("BTC/USD", 50000, balance) == 0


def test_lot_size_uses_risk_percentage(gate):
    assert gate.calculate_lot_size("BTC/USD", 50000, 10000, 0.02) == pytest.approx(0.004)


def test_lot_size_capped_by_max_risk_per_trade(default_gate):
    # 0.5 requested, config caps at 0.02
    assert default_gate.calculate_lot_size("BTC/USD", 100, 10000, 0.5) == pytest.approx(2.0)


def test_lot_size_defaults_to_max_risk_per_trade(default_gate):
    assert default_gate.calculate_lot_size("BTC/USD", 50000, 10000) == pytest.approx(0.004)


def test_lot_size_at_zero_price_is_zero(gate):
    assert gate.calculate_lot_size("BTC/USD", 0, 10000) == 0
    assert gate.calculate_lot_size("BTC/USD", -5, 10000) == 0


def test_stop_loss_and_take_profit(gate):
    assert gate.calculate_stop_loss(50000, "buy", 0.05) == pytest.approx(47500)
    assert gate.calculate_stop_loss(50000, "sell", 0.05) == pytest.approx(52500)
    assert gate.calculate_take_profit(50000, "buy", 0.15) == pytest.approx(57500)
    assert gate.calculate_take_profit(50000, "sell", 0.15) == pytest.approx(42500)


def test_stop_loss_uses_config_default(gate):
    assert gate.calculate_stop_loss(100, PositionSide.LONG) == pytest.approx(95)
    assert gate.calculate_take_profit(100, PositionSide.SHORT) == pytest.approx(85)


def test_validate_trade_accepts_within_limits(gate):
    assert gate.validate_trade("BTC/USD", 0.1, 50000, 10000) is True


def test_validate_trade_rejects_oversized_trade(gate):
    assert gate.validate_trade("BTC/USD", 1, 50000, 10000) is False


def test_validate_trade_rejects_low_balance(gate):
    # value 20 is within 50% of 50, but the balance is under 100
    assert gate.validate_trade("BTC/USD", 0.0004, 50000, 50) is False


def test_validate_trade_rejects_dust(gate):
    assert gate.validate_trade("BTC/USD", 0.0001, 50000, 10000) is False


def test_validate_trade_zero_balance_does_not_raise(gate):
    assert gate.validate_trade("BTC/USD", 0.1, 50000, 0) is False


def test_check_total_risk(gate):
    positions = [{"amount": 1, "price": 40000}, {"amount": 1, "price": 50000}]
    assert gate.check_total_risk(positions, 100000) is False
    assert gate.check_total_risk(positions[:1], 100000) is True


def test_check_total_risk_accepts_positions(gate):
    position = Position("BTC/USD", PositionSide.LONG, 50000, 0.5, 47500, 57500)
    assert gate.check_total_risk([position], 100000) is True
    assert gate.check_total_risk([position, position], 100000) is True
    assert gate.check_total_risk([position, position, position], 100000) is False


def test_max_concurrent_trades(gate):
    assert gate.get_max_concurrent_trades(500) == 1
    assert gate.get_max_concurrent_trades(2000) == 2
    assert gate.get_max_concurrent_trades(50000) == 3


def test_volatility_adjustment_dispersed_series(gate):
    adjusted = gate.adjust_position_for_volatility([50000, 45000, 55000, 40000, 60000], 1.0)
    assert 0.5 <= adjusted < 1.0


def test_volatility_adjustment_calm_series(gate):
    adjusted = gate.adjust_position_for_volatility([50000, 50100, 49900, 50050, 49950], 1.0)
    assert adjusted == pytest.approx(1.0, abs=0.05)


def test_volatility_adjustment_short_history(gate):
    assert gate.adjust_position_for_volatility([50000], 1.0) == 1.0
    assert gate.adjust_position_for_volatility([], 2.0) == 2.0


def test_validate_cooldown(gate):
    assert gate.validate_cooldown(1000, 500, now=1500) is True
    assert gate.validate_cooldown(1000, 500, now=1499) is False
    assert gate.validate_cooldown(1000, 0, now=1000) is True


def test_validate_cooldown_defaults_to_config():
    from config.manager import RiskConfig

    gate = RiskGate(RiskConfig(cooldown_period=60000))
    assert gate.validate_cooldown(0, now=59999) is False
    assert gate.validate_cooldown(0, now=60000) is True
