import json

import pytest

from config.manager import BacktestConfig, ConfigManager, RiskConfig, Settings, StrategyConfig
from errors import ConfigurationError


def test_risk_config_defaults():
    config = RiskConfig()
    assert config.max_risk_per_trade == 0.02
    assert config.max_concurrent_trades == 3
    assert config.cooldown_period == 0


@pytest.mark.parametrize("kwargs", [
    {"max_risk_per_trade": 0},
    {"max_risk_per_trade": 1.5},
    {"max_total_risk": 0},
    {"stop_loss_percentage": -0.01},
    {"take_profit_percentage": 0},
    {"minimum_balance": -1},
    {"max_concurrent_trades": 0},
    {"cooldown_period": -1},
])
def test_risk_config_rejects_invalid_values(kwargs):
    with pytest.raises(ConfigurationError):
        RiskConfig(**kwargs)


def test_unknown_keys_rejected():
    with pytest.raises(ConfigurationError):
        RiskConfig.from_dict({"max_risk": 0.1})
    with pytest.raises(ConfigurationError):
        BacktestConfig.from_dict({"capital": 5})


def test_strategy_config_json_round_trip(tmp_path):
    config = StrategyConfig(
        name="RSI_EMA_Confluence",
        cooldown_period=60000,
        params={"rsi_period": 10},
        risk={"stop_loss_percentage": 0.01},
    )
    path = tmp_path / "rsi.json"
    config.save(path)

    assert StrategyConfig.load(path) == config
    assert json.loads(path.read_text())["params"] == {"rsi_period": 10}


def test_strategy_config_yaml(tmp_path):
    path = tmp_path / "macd.yaml"
    path.write_text(
        "name: MACD_Cross\n"
        "params:\n"
        "  fast_period: 8\n"
        "risk:\n"
        "  take_profit_percentage: 0.05\n"
    )
    config = StrategyConfig.load(path)

    assert config.name == "MACD_Cross"
    assert config.enabled is True
    assert config.get_param("fast_period") == 8
    assert config.get_param("slow_period", 26) == 26
    assert config.risk == {"take_profit_percentage": 0.05}


def test_strategy_config_rejects_unknown_risk_override():
    with pytest.raises(ConfigurationError):
        StrategyConfig(name="MACD_Cross", risk={"max_total_risk": 0.5})


def test_unsupported_format(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("name = 'x'")
    with pytest.raises(ConfigurationError):
        StrategyConfig.load(path)


def test_settings_load(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "risk:\n"
        "  max_risk_per_trade: 0.05\n"
        "  cooldown_period: 3600000\n"
        "backtest:\n"
        "  initial_capital: 2500\n"
        "trading:\n"
        "  symbols: [ETH/USD, BTC/USD]\n"
        "  timeframe: 15m\n"
    )
    settings = Settings.load(path)

    assert settings.risk.max_risk_per_trade == 0.05
    assert settings.risk.cooldown_period == 3600000
    assert settings.risk.stop_loss_percentage == 0.02
    assert settings.backtest.initial_capital == 2500
    assert settings.symbols == ("ETH/USD", "BTC/USD")
    assert settings.timeframe == "15m"


def test_settings_defaults_and_round_trip(tmp_path):
    assert Settings.load(None) == Settings()

    path = tmp_path / "settings.json"
    Settings().save(path)
    assert Settings.load(path) == Settings()


def test_config_manager_defaults(tmp_path):
    manager = ConfigManager(tmp_path / "configs")
    created = manager.create_default_configs()

    assert set(created) == {"rsi_ema_confluence", "macd_cross"}
    assert manager.list_configs() == ["macd_cross", "rsi_ema_confluence"]

    fresh = ConfigManager(tmp_path / "configs")
    assert fresh.get("macd_cross").params["slow_period"] == 26
    assert set(fresh.load_all()) == {"rsi_ema_confluence", "macd_cross"}

    assert fresh.delete("macd_cross") is True
    assert fresh.get("macd_cross") is None
    assert fresh.delete("macd_cross") is False


def test_config_manager_skips_broken_files(tmp_path):
    (tmp_path / "broken.json").write_text("{not json")
    manager = ConfigManager(tmp_path)
    assert manager.load_all() == {}
    assert manager.get("broken") is None
