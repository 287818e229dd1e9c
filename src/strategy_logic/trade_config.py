"""
Trade configuration: the sizing/risk sibling of the logic config.

Wire shape:
    {"exchange": "bitget", "symbol": "BTC/USDT", "timeframeSec": 60,
     "positionMode": "Cross", "openConflictPolicy": "GiveUp",
     "sizing": {"orderQty": 0.001, "maxPositionQty": 10, "leverage": 100},
     "risk": {"takeProfitPct": 2.0, "stopLossPct": 1.0,
              "trailing": {"enabled": false, "activationProfitPct": 1.0,
                           "closeOnDrawdownPct": 0.2}}}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..config.config import get_config
from ..config.constants import (
    DEFAULT_TIMEFRAME_SEC,
    OPEN_CONFLICT_POLICY_GIVE_UP,
    TIMEFRAME_SECONDS,
    PositionMode,
)
from ..utils.helpers import safe_bool, safe_float, safe_int, safe_str
from .errors import ConfigFormatError
from .indicators import IndicatorSelection
from .logic_config import StrategyLogicConfig
from .value_refs import normalize_timeframe


@dataclass(frozen=True)
class SizingConfig:
    order_qty: float = 0.001
    max_position_qty: float = 10
    leverage: int = 100

    def __post_init__(self):
        if self.order_qty <= 0:
            raise ValueError(f"orderQty must be > 0, got {self.order_qty}")
        if self.max_position_qty <= 0:
            raise ValueError(f"maxPositionQty must be > 0, got {self.max_position_qty}")
        if self.leverage < 1:
            raise ValueError(f"leverage must be >= 1, got {self.leverage}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderQty": self.order_qty,
            "maxPositionQty": self.max_position_qty,
            "leverage": self.leverage,
        }


@dataclass(frozen=True)
class TrailingStopConfig:
    enabled: bool = False
    activation_profit_pct: float = 1.0
    close_on_drawdown_pct: float = 0.2

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "activationProfitPct": self.activation_profit_pct,
            "closeOnDrawdownPct": self.close_on_drawdown_pct,
        }


@dataclass(frozen=True)
class RiskConfig:
    take_profit_pct: float = 2.0
    stop_loss_pct: float = 1.0
    trailing: TrailingStopConfig = field(default_factory=TrailingStopConfig)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "takeProfitPct": self.take_profit_pct,
            "stopLossPct": self.stop_loss_pct,
            "trailing": self.trailing.to_dict(),
        }


@dataclass(frozen=True)
class StrategyTradeConfig:
    """Where and how much to trade."""
    exchange: str = "bitget"
    symbol: str = "BTC/USDT"
    timeframe_sec: int = DEFAULT_TIMEFRAME_SEC
    position_mode: str = PositionMode.CROSS
    open_conflict_policy: str = OPEN_CONFLICT_POLICY_GIVE_UP
    sizing: SizingConfig = field(default_factory=SizingConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)

    def __post_init__(self):
        if self.timeframe_sec <= 0:
            raise ValueError(f"timeframeSec must be > 0, got {self.timeframe_sec}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exchange": self.exchange,
            "symbol": self.symbol,
            "timeframeSec": self.timeframe_sec,
            "positionMode": self.position_mode,
            "openConflictPolicy": self.open_conflict_policy,
            "sizing": self.sizing.to_dict(),
            "risk": self.risk.to_dict(),
        }


def default_trade_config() -> StrategyTradeConfig:
    """Defaults for a new strategy; exchange and symbol come from config."""
    defaults = get_config().trade_defaults
    return StrategyTradeConfig(exchange=defaults.exchange, symbol=defaults.symbol)


def normalize_position_mode(raw: Optional[str]) -> str:
    """
    Map legacy position mode spellings to Cross/Isolated.

    "cross" -> Cross, "isolated" -> Isolated, hedge/long-short modes -> Cross.
    Empty input returns ""; anything else is returned unchanged.
    """
    value = (raw or "").strip().lower()
    if not value:
        return ""
    if "cross" in value:
        return PositionMode.CROSS
    if "isolate" in value:
        return PositionMode.ISOLATED
    if "longshort" in value or "hedge" in value:
        return PositionMode.CROSS
    return raw


def _section(data: Dict[str, Any], key: str, path: str) -> Dict[str, Any]:
    """Nested object under `key`; missing or null reads as empty."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigFormatError(f"{path} must be an object, got {type(value).__name__}")
    return value


def merge_trade_config(
    partial: Optional[Dict[str, Any]] = None,
    defaults: Optional[StrategyTradeConfig] = None,
) -> StrategyTradeConfig:
    """
    Deep-merge a partial wire dict over the defaults.

    Args:
        partial: Persisted/hand-authored trade dict, any keys may be missing
        defaults: Base config (default_trade_config() when omitted)

    Returns:
        Complete StrategyTradeConfig

    Raises:
        ConfigFormatError: If a present value is out of range, or a nested
            section is not an object
    """
    base = defaults if defaults is not None else default_trade_config()
    if not partial:
        return base
    if not isinstance(partial, dict):
        raise ConfigFormatError(f"trade must be an object, got {type(partial).__name__}")

    sizing = _section(partial, "sizing", "trade.sizing")
    risk = _section(partial, "risk", "trade.risk")
    trailing = _section(risk, "trailing", "trade.risk.trailing")

    try:
        return StrategyTradeConfig(
            exchange=safe_str(partial.get("exchange"), base.exchange) or base.exchange,
            symbol=safe_str(partial.get("symbol"), base.symbol) or base.symbol,
            timeframe_sec=safe_int(partial.get("timeframeSec"), base.timeframe_sec),
            position_mode=normalize_position_mode(partial.get("positionMode")) or base.position_mode,
            open_conflict_policy=(
                safe_str(partial.get("openConflictPolicy")) or base.open_conflict_policy
            ),
            sizing=SizingConfig(
                order_qty=safe_float(sizing.get("orderQty"), base.sizing.order_qty),
                max_position_qty=safe_float(sizing.get("maxPositionQty"), base.sizing.max_position_qty),
                leverage=safe_int(sizing.get("leverage"), base.sizing.leverage),
            ),
            risk=RiskConfig(
                take_profit_pct=safe_float(risk.get("takeProfitPct"), base.risk.take_profit_pct),
                stop_loss_pct=safe_float(risk.get("stopLossPct"), base.risk.stop_loss_pct),
                trailing=TrailingStopConfig(
                    enabled=safe_bool(trailing.get("enabled"), base.risk.trailing.enabled),
                    activation_profit_pct=safe_float(
                        trailing.get("activationProfitPct"),
                        base.risk.trailing.activation_profit_pct,
                    ),
                    close_on_drawdown_pct=safe_float(
                        trailing.get("closeOnDrawdownPct"),
                        base.risk.trailing.close_on_drawdown_pct,
                    ),
                ),
            ),
        )
    except ValueError as e:
        raise ConfigFormatError(f"Invalid trade config: {e}") from e


def parse_timeframe_seconds(raw: Optional[str]) -> Optional[int]:
    """Seconds for a timeframe label, None if it isn't a known timeframe."""
    return TIMEFRAME_SECONDS.get(normalize_timeframe(raw))


def resolve_trade_timeframe_sec(selection: IndicatorSelection) -> int:
    """First parseable indicator timeframe in selection order, else the default."""
    for indicator in selection:
        seconds = parse_timeframe_seconds(indicator.timeframe)
        if seconds:
            return seconds
    return DEFAULT_TIMEFRAME_SEC


@dataclass(frozen=True)
class StrategyConfig:
    """The full strategy document: trade plus logic."""
    trade: StrategyTradeConfig
    logic: StrategyLogicConfig

    def to_dict(self) -> Dict[str, Any]:
        return {"trade": self.trade.to_dict(), "logic": self.logic.to_dict()}

    @classmethod
    def from_dict(cls, data: Any) -> "StrategyConfig":
        if not isinstance(data, dict):
            raise ConfigFormatError(f"Strategy config must be an object, got {type(data).__name__}")
        if "logic" not in data:
            raise ConfigFormatError("Strategy config has no 'logic' section")
        return cls(
            trade=merge_trade_config(data.get("trade")),
            logic=StrategyLogicConfig.from_dict(data["logic"]),
        )
