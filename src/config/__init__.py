"""
Configuration management.
"""

from .config import (
    Config,
    get_config,
    reset_config,
    EditorLimitsConfig,
    LogConfig,
    TradeDefaultsConfig,
)

from .constants import (
    KLINE_FIELDS,
    TIMEFRAME_SECONDS,
    DEFAULT_TIMEFRAME_SEC,
    PositionMode,
    POSITION_MODES,
    normalize_field_key,
    is_kline_field,
)

__all__ = [
    # Config classes
    "Config",
    "get_config",
    "reset_config",
    "EditorLimitsConfig",
    "LogConfig",
    "TradeDefaultsConfig",
    # Constants
    "KLINE_FIELDS",
    "TIMEFRAME_SECONDS",
    "DEFAULT_TIMEFRAME_SEC",
    "PositionMode",
    "POSITION_MODES",
    "normalize_field_key",
    "is_kline_field",
]
