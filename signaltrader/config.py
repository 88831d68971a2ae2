"""Configuration loading for SignalTrader.

Settings live in a TOML file (``~/.config/signaltrader/config.toml`` by
default). Every key is optional; missing keys fall back to the defaults
declared on the models below.
"""

import importlib
import os
from datetime import timedelta
from pathlib import Path
from typing import Any, Optional

import toml
from pydantic import BaseModel, Field, ValidationError

from signaltrader.errors import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "signaltrader"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_DB_PATH = CONFIG_DIR / "signaltrader.db"


class TradingSettings(BaseModel):
    """Account and run limits."""

    starting_balance: float = Field(default=10000.0, gt=0)
    max_signals_per_run: int = Field(default=5, ge=1)
    max_tickers_per_signal: int = Field(default=3, ge=1)
    cooldown_minutes: int = Field(default=60, ge=0)

    @property
    def cooldown(self) -> timedelta:
        return timedelta(minutes=self.cooldown_minutes)


class MarketSettings(BaseModel):
    """Local-time window during which quotes move."""

    open_hour: int = Field(default=9, ge=0, le=23)
    close_hour: int = Field(default=16, ge=1, le=24)


class CacheSettings(BaseModel):
    """Time-to-live for each cache."""

    price_market_hours_minutes: int = Field(default=60, ge=1)
    price_off_hours_hours: int = Field(default=24, ge=1)
    previous_close_hours: int = Field(default=24, ge=1)
    overview_hours: int = Field(default=24, ge=1)
    analysis_days: int = Field(default=30, ge=1)


class AgentSettings(BaseModel):
    """Models used by the oracle agents."""

    model: str = "gpt-5.2"
    fast_model: Optional[str] = None


class SourceSettings(BaseModel):
    """Dotted ``module:Class`` paths for the external data sources.

    ``ticker_extractor`` is ``agent``, ``cashtag`` or a ``module:Class`` path.
    ``options`` maps a source name to constructor keyword arguments.
    """

    signals: Optional[str] = None
    documents: Optional[str] = None
    fundamentals: Optional[str] = None
    prices: Optional[str] = None
    ticker_extractor: str = "agent"
    options: dict[str, dict[str, Any]] = Field(default_factory=dict)


class DatabaseSettings(BaseModel):
    path: Path = DEFAULT_DB_PATH


class Settings(BaseModel):
    """Top-level SignalTrader configuration."""

    trading: TradingSettings = Field(default_factory=TradingSettings)
    market: MarketSettings = Field(default_factory=MarketSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    agents: AgentSettings = Field(default_factory=AgentSettings)
    sources: SourceSettings = Field(default_factory=SourceSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Load settings from a TOML file.

    Args:
        config_path: Path to the config file. Defaults to
            ``~/.config/signaltrader/config.toml``.

    Returns:
        Parsed settings. Defaults are used when the file does not exist.

    Raises:
        ConfigurationError: If the file is not valid TOML or fails validation.
    """
    path = config_path or DEFAULT_CONFIG_PATH
    data: dict[str, Any] = {}

    if path.exists():
        try:
            data = toml.load(path)
        except toml.TomlDecodeError as e:
            raise ConfigurationError(f"Invalid TOML in {path}: {e}") from e

    model_override = os.environ.get("OPENAI_MODEL")
    if model_override:
        data.setdefault("agents", {})["model"] = model_override

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e


def load_component(dotted_path: str, **kwargs: Any) -> Any:
    """Instantiate a class named by a ``module:Class`` path.

    Args:
        dotted_path: Import path such as ``mypkg.feeds:RedditFeed``.
        **kwargs: Keyword arguments passed to the constructor.

    Returns:
        The constructed instance.

    Raises:
        ConfigurationError: If the module or class cannot be found.
    """
    module_path, _, attr_name = dotted_path.partition(":")
    if not module_path or not attr_name:
        raise ConfigurationError(
            f"'{dotted_path}' is not a valid 'module:Class' path"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise ConfigurationError(f"Could not import {module_path}: {e}") from e

    if not hasattr(module, attr_name):
        raise ConfigurationError(f"Could not find '{attr_name}' in {module_path}")

    return getattr(module, attr_name)(**kwargs)
