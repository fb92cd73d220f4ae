"""
Configuration management with a YAML file and environment overrides
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import pytz
import yaml
from pydantic import BaseModel, Field, ValidationError

from btc_dashboard.core.exceptions import ConfigurationError
from btc_dashboard.models.interval import Interval

CONFIG_FILE_NAME = "dashboard_config.yaml"


@dataclass
class BinanceConfig:
    """
    Binance endpoint configuration.

    Centralizes REST and WebSocket URLs for proxy support and
    testnet/mainnet selection.
    """

    rest_mainnet_url: str = "https://fapi.binance.com"
    rest_testnet_url: str = "https://testnet.binancefuture.com"
    ws_mainnet_url: str = "wss://fstream.binance.com"
    ws_testnet_url: str = "wss://stream.binancefuture.com"
    use_testnet: bool = False

    def __post_init__(self):
        for name in ("rest_mainnet_url", "rest_testnet_url"):
            if not getattr(self, name).startswith(("http://", "https://")):
                raise ConfigurationError(f"{name} must be an http(s) URL")
        for name in ("ws_mainnet_url", "ws_testnet_url"):
            if not getattr(self, name).startswith(("ws://", "wss://")):
                raise ConfigurationError(f"{name} must be a ws(s) URL")

    @property
    def rest_url(self) -> str:
        return self.rest_testnet_url if self.use_testnet else self.rest_mainnet_url

    @property
    def ws_url(self) -> str:
        return self.ws_testnet_url if self.use_testnet else self.ws_mainnet_url


@dataclass
class DashboardConfig:
    """Chart and poller configuration"""

    class ParamSchema(BaseModel):
        """Pydantic schema for numeric dashboard parameters."""
        page_size: int = Field(1000, ge=1, le=1000, description="Candles per REST page")
        fast_price_period: float = Field(1.0, gt=0, le=60, description="Price poll seconds")
        daily_stats_period: float = Field(10.0, gt=0, le=600, description="24h stats poll seconds")

    symbol: str = "BTCUSDT"
    default_interval: str = "1m"
    timezone: str = "UTC"
    page_size: int = 1000
    fast_price_period: float = 1.0
    daily_stats_period: float = 10.0

    def __post_init__(self):
        self.symbol = self.symbol.upper()
        if not self.symbol:
            raise ConfigurationError("symbol cannot be empty")

        try:
            Interval.parse(self.default_interval)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        try:
            pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError as e:
            raise ConfigurationError(f"Unknown timezone: {self.timezone}") from e

        try:
            self.ParamSchema(
                page_size=self.page_size,
                fast_price_period=self.fast_price_period,
                daily_stats_period=self.daily_stats_period,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid dashboard parameters: {e}") from e

    @property
    def interval(self) -> Interval:
        return Interval.parse(self.default_interval)

    @property
    def tz(self):
        return pytz.timezone(self.timezone)


@dataclass
class LoggingConfig:
    """Logging system configuration"""
    log_level: str = "INFO"
    log_dir: str = "logs"

    def __post_init__(self):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if self.log_level.upper() not in valid_levels:
            raise ConfigurationError(
                f"Invalid log level: {self.log_level}. "
                f"Must be one of {valid_levels}"
            )


class ConfigManager:
    """
    Loads dashboard configuration from configs/dashboard_config.yaml.

    A missing file means defaults. Environment variables override the file:
        BINANCE_USE_TESTNET, DASHBOARD_TIMEZONE, DASHBOARD_LOG_LEVEL
    """

    def __init__(self, config_dir: str = "configs"):
        self.config_dir = Path(config_dir)
        self.logger = logging.getLogger(__name__)
        self._binance_config: Optional[BinanceConfig] = None
        self._dashboard_config: Optional[DashboardConfig] = None
        self._logging_config: Optional[LoggingConfig] = None

        self._load_configs()

    def _load_configs(self):
        """Load all configuration sections"""
        data = self._read_yaml()
        self._binance_config = self._load_binance_config(data.get("binance") or {})
        self._dashboard_config = self._load_dashboard_config(data.get("dashboard") or {})
        self._logging_config = self._load_logging_config(data.get("logging") or {})

    def _read_yaml(self) -> Dict[str, Any]:
        config_file = self.config_dir / CONFIG_FILE_NAME
        if not config_file.exists():
            self.logger.debug(f"{config_file} not found, using defaults")
            return {}

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{config_file} must contain a mapping at top level")
        return data

    @staticmethod
    def _section_kwargs(section: Dict[str, Any], cls) -> Dict[str, Any]:
        known = set(cls.__dataclass_fields__)
        unknown = set(section) - known
        if unknown:
            raise ConfigurationError(
                f"Unknown {cls.__name__} keys: {sorted(unknown)}"
            )
        return dict(section)

    def _load_binance_config(self, section: Dict[str, Any]) -> BinanceConfig:
        kwargs = self._section_kwargs(section, BinanceConfig)

        is_testnet_env = os.getenv("BINANCE_USE_TESTNET")
        if is_testnet_env is not None:
            kwargs["use_testnet"] = is_testnet_env.lower() == "true"

        return BinanceConfig(**kwargs)

    def _load_dashboard_config(self, section: Dict[str, Any]) -> DashboardConfig:
        kwargs = self._section_kwargs(section, DashboardConfig)

        timezone_env = os.getenv("DASHBOARD_TIMEZONE")
        if timezone_env:
            kwargs["timezone"] = timezone_env

        return DashboardConfig(**kwargs)

    def _load_logging_config(self, section: Dict[str, Any]) -> LoggingConfig:
        kwargs = self._section_kwargs(section, LoggingConfig)

        log_level_env = os.getenv("DASHBOARD_LOG_LEVEL")
        if log_level_env:
            kwargs["log_level"] = log_level_env

        return LoggingConfig(**kwargs)

    @property
    def is_testnet(self) -> bool:
        """Check if running against testnet endpoints"""
        return self._binance_config.use_testnet

    @property
    def binance_config(self) -> BinanceConfig:
        return self._binance_config

    @property
    def dashboard_config(self) -> DashboardConfig:
        return self._dashboard_config

    @property
    def logging_config(self) -> LoggingConfig:
        return self._logging_config
