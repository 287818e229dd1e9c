"""
Centralized constants for the strategy logic editor.

Kline fields, timeframe tables, and trade option vocabularies shared by the
resolver, the preview generator, and the trade config defaults.
"""

from typing import Dict, Optional


# ==================== Kline Fields ====================

# Raw candle columns a condition may reference directly (refType "Field").
# key -> (label, hint)
KLINE_FIELDS: Dict[str, tuple] = {
    "OPEN": ("Open price", "Open"),
    "HIGH": ("High price", "High"),
    "LOW": ("Low price", "Low"),
    "CLOSE": ("Close price", "Close"),
    "VOLUME": ("Volume", "Volume"),
    "HL2": ("High/low average", "HL2"),
    "HLC3": ("High/low/close average", "HLC3"),
    "OHLC4": ("Four-price average", "OHLC4"),
    "OC2": ("Open/close average", "OC2"),
    "HLCC4": ("High/low/close/close average", "HLCC4"),
}


def normalize_field_key(raw: Optional[str]) -> str:
    """Normalize a kline field key ("close " -> "CLOSE")."""
    return (raw or "").strip().upper()


def is_kline_field(raw: Optional[str]) -> bool:
    """Check whether a string names a known kline field."""
    return normalize_field_key(raw) in KLINE_FIELDS


# ==================== Timeframes ====================

# Label -> seconds. Labels are the canonical "<n><unit>" form.
TIMEFRAME_SECONDS: Dict[str, int] = {
    "1m": 60,
    "3m": 180,
    "5m": 300,
    "15m": 900,
    "30m": 1800,
    "1h": 3600,
    "2h": 7200,
    "4h": 14400,
    "6h": 21600,
    "8h": 28800,
    "12h": 43200,
    "1d": 86400,
    "3d": 259200,
    "1w": 604800,
    "1mo": 2592000,
}

DEFAULT_TIMEFRAME_SEC = 60


# ==================== Trade Options ====================

EXCHANGES = ("binance", "okx", "bitget")

SYMBOLS = ("BTC/USDT", "ETH/USDT", "XRP/USDT", "SOL/USDT", "DOGE/USDT", "BNB/USDT")

LEVERAGE_OPTIONS = (10, 20, 50, 100)


class PositionMode:
    CROSS = "Cross"
    ISOLATED = "Isolated"


POSITION_MODES = (PositionMode.CROSS, PositionMode.ISOLATED)

OPEN_CONFLICT_POLICY_GIVE_UP = "GiveUp"
