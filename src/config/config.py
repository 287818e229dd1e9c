"""
Configuration management for the strategy logic editor.
Loads settings from environment variables with sensible defaults.
"""

import os
from dataclasses import dataclass
from typing import Optional
from pathlib import Path
from dotenv import load_dotenv


@dataclass
class EditorLimitsConfig:
    """
    Editing limits applied by the reducers.

    These mirror what the editor UI allows a user to build; the compiler
    itself accepts trees of any size.
    """
    max_groups_per_container: int = 3
    max_conditions_per_group: int = 6

    def __post_init__(self):
        if self.max_groups_per_container < 1:
            raise ValueError(
                f"MAX_GROUPS_PER_CONTAINER must be >= 1, got {self.max_groups_per_container}"
            )
        if self.max_conditions_per_group < 1:
            raise ValueError(
                f"MAX_CONDITIONS_PER_GROUP must be >= 1, got {self.max_conditions_per_group}"
            )


@dataclass
class LogConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_dir: str = "logs"
    log_to_file: bool = True


@dataclass
class TradeDefaultsConfig:
    """Defaults for a new strategy's trade section."""
    exchange: str = "bitget"
    symbol: str = "BTC/USDT"


class Config:
    """
    Central configuration manager.

    Loads configuration from environment variables and provides
    typed access to all settings.
    """

    _instance: Optional['Config'] = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, env_file: str = ".env"):
        if self._initialized:
            return

        env_path = Path(env_file)
        if env_path.exists():
            load_dotenv(env_path, override=True)

        self.limits = self._load_limits_config()
        self.log = self._load_log_config()
        self.trade_defaults = self._load_trade_defaults_config()

        self._initialized = True

    def _load_limits_config(self) -> EditorLimitsConfig:
        """Load editing limits from environment."""
        return EditorLimitsConfig(
            max_groups_per_container=int(os.getenv("MAX_GROUPS_PER_CONTAINER", "3")),
            max_conditions_per_group=int(os.getenv("MAX_CONDITIONS_PER_GROUP", "6")),
        )

    def _load_log_config(self) -> LogConfig:
        """Load logging configuration from environment."""
        return LogConfig(
            level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            log_to_file=os.getenv("LOG_TO_FILE", "true").lower() == "true",
        )

    def _load_trade_defaults_config(self) -> TradeDefaultsConfig:
        """Load trade defaults from environment."""
        return TradeDefaultsConfig(
            exchange=os.getenv("DEFAULT_EXCHANGE", "bitget"),
            symbol=os.getenv("DEFAULT_SYMBOL", "BTC/USDT"),
        )

    def summary_short(self) -> str:
        """Generate a short one-line configuration summary."""
        return (
            f"groups/container={self.limits.max_groups_per_container} | "
            f"conditions/group={self.limits.max_conditions_per_group} | "
            f"log={self.log.level}"
        )


def get_config(env_file: str = ".env") -> Config:
    """Get or create the global config instance."""
    return Config(env_file)


def reset_config() -> None:
    """Drop the cached instance so the next get_config() re-reads the environment."""
    Config._instance = None
