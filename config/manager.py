"""
Configuration management for risk limits, backtests and strategies.

This module handles loading, saving, and managing configurations
from JSON or YAML files. Every config is read once at run start and
is not mutated while a run is in progress.
"""
import json
import logging
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple, Union
from dataclasses import dataclass, asdict, field, fields

from errors import ConfigurationError


logger = logging.getLogger(__name__)


def _read_file(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(f)
        elif path.suffix == ".json":
            data = json.load(f)
        else:
            raise ConfigurationError(f"Unsupported config format: {path.suffix}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def _write_file(path: Union[str, Path], data: Dict[str, Any]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w", encoding="utf-8") as f:
        if path.suffix in (".yaml", ".yml"):
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(data, f, indent=2)


def _known_fields(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        raise ConfigurationError(f"Unknown {cls.__name__} keys: {sorted(unknown)}")
    return dict(data)


@dataclass(frozen=True)
class RiskConfig:
    """
    Risk thresholds read by the risk gate.

    Attributes:
        max_risk_per_trade: Max fraction of balance committed to one trade, in (0, 1)
        max_total_risk: Max fraction of balance exposed across open positions, in (0, 1)
        stop_loss_percentage: Default stop distance as a fraction of entry price
        take_profit_percentage: Default target distance as a fraction of entry price
        minimum_balance: Below this balance no new trade is sized or accepted
        max_concurrent_trades: Base limit on simultaneously open positions
        cooldown_period: Minimum milliseconds between two entry signals
    """
    max_risk_per_trade: float = 0.02
    max_total_risk: float = 0.1
    stop_loss_percentage: float = 0.02
    take_profit_percentage: float = 0.04
    minimum_balance: float = 100.0
    max_concurrent_trades: int = 3
    cooldown_period: int = 0

    def __post_init__(self):
        """Validate configuration parameters."""
        if not 0 < self.max_risk_per_trade < 1:
            raise ConfigurationError(
                f"max_risk_per_trade must be in (0, 1), got {self.max_risk_per_trade}"
            )
        if not 0 < self.max_total_risk < 1:
            raise ConfigurationError(f"max_total_risk must be in (0, 1), got {self.max_total_risk}")
        if self.stop_loss_percentage <= 0:
            raise ConfigurationError(
                f"stop_loss_percentage must be positive, got {self.stop_loss_percentage}"
            )
        if self.take_profit_percentage <= 0:
            raise ConfigurationError(
                f"take_profit_percentage must be positive, got {self.take_profit_percentage}"
            )
        if self.minimum_balance < 0:
            raise ConfigurationError(f"minimum_balance must be >= 0, got {self.minimum_balance}")
        if self.max_concurrent_trades < 1:
            raise ConfigurationError(
                f"max_concurrent_trades must be >= 1, got {self.max_concurrent_trades}"
            )
        if self.cooldown_period < 0:
            raise ConfigurationError(f"cooldown_period must be >= 0, got {self.cooldown_period}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RiskConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class BacktestConfig:
    """
    Settings for a simulated run.

    Attributes:
        initial_capital: Quote currency the ledger is seeded with
        quote_asset: Ledger asset used as cash
        fee_rate: Fee recorded per fill as a fraction of notional (0.1%)
        risk_free_rate: Per-step risk-free rate used by the Sharpe ratio
        data_dir: Directory of historical candle files
    """
    initial_capital: float = 10000.0
    quote_asset: str = "USD"
    fee_rate: float = 0.001
    risk_free_rate: float = 0.0
    data_dir: str = "data"

    def __post_init__(self):
        if self.initial_capital < 0:
            raise ConfigurationError(f"initial_capital must be >= 0, got {self.initial_capital}")
        if self.fee_rate < 0:
            raise ConfigurationError(f"fee_rate must be >= 0, got {self.fee_rate}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BacktestConfig":
        return cls(**_known_fields(cls, data))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StrategyConfig:
    """
    Base configuration for a trading strategy.

    Attributes:
        name: Registered strategy name (e.g. 'RSI_EMA_Confluence')
        enabled: Whether strategy is active (default: True)
        cooldown_period: Milliseconds between entry signals; None uses the risk config
        params: Strategy-specific indicator parameters
        risk: Per-strategy overrides for stop_loss_percentage / take_profit_percentage

    Example:
        >>> config = StrategyConfig(
        ...     name="RSI_EMA_Confluence",
        ...     params={"rsi_period": 14, "fast_ema_period": 9, "slow_ema_period": 21},
        ...     risk={"stop_loss_percentage": 0.02, "take_profit_percentage": 0.04}
        ... )
        >>> config.save("config/rsi_ema_confluence.json")
    """
    name: str
    enabled: bool = True
    cooldown_period: Optional[int] = None
    params: Dict[str, Any] = field(default_factory=dict)
    risk: Dict[str, float] = field(default_factory=dict)

    def __post_init__(self):
        """Validate configuration parameters."""
        if not self.name:
            raise ConfigurationError("Strategy config requires a name")
        if self.cooldown_period is not None and self.cooldown_period < 0:
            raise ConfigurationError(f"cooldown_period must be >= 0, got {self.cooldown_period}")
        for key in self.risk:
            if key not in ("stop_loss_percentage", "take_profit_percentage"):
                raise ConfigurationError(f"Unsupported strategy risk override: {key}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StrategyConfig":
        """
        Create config from dictionary.

        Args:
            data: Dictionary with config fields

        Returns:
            StrategyConfig instance
        """
        data = _known_fields(cls, data)
        params = data.pop("params", None) or {}
        risk = data.pop("risk", None) or {}
        return cls(params=dict(params), risk=dict(risk), **data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return asdict(self)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "StrategyConfig":
        """
        Load config from JSON or YAML file.

        Args:
            path: Path to config file (.json or .yaml/.yml)

        Returns:
            StrategyConfig instance

        Raises:
            FileNotFoundError: If file doesn't exist
            ConfigurationError: If file format is invalid
        """
        return cls.from_dict(_read_file(path))

    def save(self, path: Union[str, Path]) -> None:
        """Save config to a .json or .yaml/.yml file."""
        _write_file(path, self.to_dict())

    def get_param(self, key: str, default: Any = None) -> Any:
        """Get a parameter value with optional default."""
        return self.params.get(key, default)


@dataclass(frozen=True)
class Settings:
    """
    Bot-wide settings file: risk thresholds, backtest defaults and trading targets.

    File layout::

        risk: {max_risk_per_trade: 0.02, ...}
        backtest: {initial_capital: 10000, ...}
        trading: {symbols: ["BTC/USD"], timeframe: "1h"}
    """
    risk: RiskConfig = field(default_factory=RiskConfig)
    backtest: BacktestConfig = field(default_factory=BacktestConfig)
    symbols: Tuple[str, ...] = ("BTC/USD",)
    timeframe: str = "1h"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        trading = data.get("trading") or {}
        return cls(
            risk=RiskConfig.from_dict(data.get("risk") or {}),
            backtest=BacktestConfig.from_dict(data.get("backtest") or {}),
            symbols=tuple(trading.get("symbols", cls.symbols)),
            timeframe=trading.get("timeframe", cls.timeframe),
        )

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None) -> "Settings":
        """Load settings from a file; no path gives the defaults."""
        if path is None:
            return cls()
        settings = cls.from_dict(_read_file(path))
        logger.info("Loaded settings from %s", path)
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "risk": self.risk.to_dict(),
            "backtest": self.backtest.to_dict(),
            "trading": {"symbols": list(self.symbols), "timeframe": self.timeframe},
        }

    def save(self, path: Union[str, Path]) -> None:
        _write_file(path, self.to_dict())


class ConfigManager:
    """
    Manage configurations for multiple strategies.

    Provides centralized access to strategy configurations with
    automatic loading and caching.

    Example:
        >>> mgr = ConfigManager("config")
        >>> config = mgr.get("rsi_ema_confluence")
        >>> configs = mgr.load_all()
    """

    EXTENSIONS = (".json", ".yaml", ".yml")

    def __init__(self, config_dir: Union[str, Path] = "config"):
        """
        Initialize config manager.

        Args:
            config_dir: Directory containing config files
        """
        self.config_dir = Path(config_dir)
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self._configs: Dict[str, StrategyConfig] = {}

    def load_all(self) -> Dict[str, StrategyConfig]:
        """
        Load all strategy configs from the config directory.

        Files that fail to parse are skipped with a warning.

        Returns:
            Dictionary mapping config names to StrategyConfig objects
        """
        for ext in self.EXTENSIONS:
            for config_file in self.config_dir.glob(f"*{ext}"):
                try:
                    self._configs[config_file.stem] = StrategyConfig.load(config_file)
                except (json.JSONDecodeError, yaml.YAMLError, ValueError, TypeError) as e:
                    logger.warning("Failed to load %s: %s", config_file, e)

        return self._configs

    def get(self, name: str) -> Optional[StrategyConfig]:
        """
        Get config by name, loading it from disk on first access.

        Args:
            name: Config name (e.g., "rsi_ema_confluence")

        Returns:
            StrategyConfig or None if not found
        """
        if name not in self._configs:
            for ext in self.EXTENSIONS:
                config_path = self.config_dir / f"{name}{ext}"
                if config_path.exists():
                    try:
                        self._configs[name] = StrategyConfig.load(config_path)
                        break
                    except (json.JSONDecodeError, yaml.YAMLError, ValueError, TypeError) as e:
                        logger.warning("Failed to load %s: %s", config_path, e)

        return self._configs.get(name)

    def save(self, name: str, config: StrategyConfig) -> None:
        """Save a config to <config_dir>/<name>.json."""
        self._configs[name] = config
        config.save(self.config_dir / f"{name}.json")

    def create_default_configs(self) -> Dict[str, StrategyConfig]:
        """
        Create and save default configs for every registered strategy.

        Returns:
            Dictionary of all created configs
        """
        configs = {
            "rsi_ema_confluence": StrategyConfig(
                name="RSI_EMA_Confluence",
                params={
                    "rsi_period": 14,
                    "fast_ema_period": 9,
                    "slow_ema_period": 21,
                    "rsi_oversold": 30,
                    "rsi_overbought": 70
                },
                risk={
                    "stop_loss_percentage": 0.02,
                    "take_profit_percentage": 0.04
                }
            ),
            "macd_cross": StrategyConfig(
                name="MACD_Cross",
                params={
                    "fast_period": 12,
                    "slow_period": 26,
                    "signal_period": 9
                },
                risk={
                    "stop_loss_percentage": 0.03,
                    "take_profit_percentage": 0.06
                }
            )
        }

        for name, config in configs.items():
            self.save(name, config)

        return configs

    def list_configs(self) -> list:
        """List all available config names (without extensions)."""
        configs = set()
        for ext in self.EXTENSIONS:
            for config_file in self.config_dir.glob(f"*{ext}"):
                configs.add(config_file.stem)
        return sorted(configs)

    def delete(self, name: str) -> bool:
        """
        Delete a config file.

        Returns:
            True if deleted, False if not found
        """
        deleted = False
        for ext in self.EXTENSIONS:
            config_path = self.config_dir / f"{name}{ext}"
            if config_path.exists():
                config_path.unlink()
                deleted = True

        self._configs.pop(name, None)

        return deleted
