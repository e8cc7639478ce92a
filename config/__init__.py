from config.manager import BacktestConfig, ConfigManager, RiskConfig, Settings, StrategyConfig

__all__ = ["BacktestConfig", "ConfigManager", "RiskConfig", "Settings", "StrategyConfig"]
