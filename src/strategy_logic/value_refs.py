"""
Value references: the address of one time-series column a condition reads.

A ValueRef is one of three kinds:
- Indicator: an output channel of a selected indicator instance
- Field: a raw kline column (CLOSE, HL2, ...)
- Const: a numeric literal carried as a string in `input`

Wire form (the execution engine contract):
    {"refType": "Indicator", "indicator": "RSI", "timeframe": "1h",
     "input": "Close", "params": [14], "output": "Value",
     "offsetRange": [0, 0], "calcMode": "OnBarClose"}
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union

from ..config.constants import TIMEFRAME_SECONDS, normalize_field_key
from ..utils.helpers import format_number, wire_number
from .errors import ConfigFormatError


DEFAULT_OUTPUT = "Value"
DEFAULT_AGGREGATION = "OnBarClose"

_SWAPPED_TIMEFRAME = re.compile(r"^([a-z]+)(\d+)$")


class RefType(str, Enum):
    """Kind of series a ValueRef addresses."""
    INDICATOR = "Indicator"
    FIELD = "Field"
    CONST = "Const"

    @classmethod
    def parse(cls, raw: Any) -> "RefType":
        """Parse a wire refType case-insensitively ("number" is an old alias of Const)."""
        if isinstance(raw, RefType):
            return raw
        value = str(raw or "").strip().lower()
        if value in ("", "indicator"):
            return cls.INDICATOR
        if value == "field":
            return cls.FIELD
        if value in ("const", "number"):
            return cls.CONST
        raise ValueError(
            f"Unknown refType '{raw}'. Allowed: Indicator, Field, Const"
        )


def normalize_timeframe(raw: Optional[str]) -> str:
    """
    Normalize a timeframe label to the canonical "<n><unit>" form.

    Lowercases and strips whitespace; swaps the legacy unit-first form
    ("m5" -> "5m"). Unknown labels are returned lowercased, never rejected.
    """
    value = re.sub(r"\s+", "", (raw or "").strip().lower())
    if not value or value in TIMEFRAME_SECONDS:
        return value
    match = _SWAPPED_TIMEFRAME.match(value)
    if not match:
        return value
    return f"{match.group(2)}{match.group(1)}"


def _coerce_params(params: Any) -> Tuple[float, ...]:
    if params is None:
        return ()
    if isinstance(params, (str, bytes)):
        raise ValueError(f"ValueRef: params must be a list of numbers, got {params!r}")
    coerced = []
    for item in params:
        if isinstance(item, bool):
            raise ValueError(f"ValueRef: params must be numeric, got {item!r}")
        try:
            coerced.append(float(item))
        except (TypeError, ValueError):
            raise ValueError(f"ValueRef: params must be numeric, got {item!r}") from None
    return tuple(coerced)


def _coerce_offset(offset_range: Any) -> Tuple[int, int]:
    if offset_range is None:
        return (0, 0)
    if isinstance(offset_range, int) and not isinstance(offset_range, bool):
        return (offset_range, offset_range)
    values = tuple(offset_range)
    if len(values) != 2:
        raise ValueError(
            f"ValueRef: offsetRange must be [minBarsBack, maxBarsBack], got {list(values)}"
        )
    try:
        return (int(values[0]), int(values[1]))
    except (TypeError, ValueError):
        raise ValueError(f"ValueRef: offsetRange must be integers, got {list(values)}") from None


@dataclass(frozen=True)
class ValueRef:
    """
    Immutable address of one series column.

    Attributes:
        indicator_id: Indicator code ("RSI", "MACD"); empty for Field/Const refs
        timeframe: Timeframe label ("1h"); may be empty for Field refs
        input_channel: Source column ("Close"), kline field key, or the literal text for Const
        params: Indicator parameters, order matters
        output_channel: Output of a multi-output indicator (default "Value")
        offset_range: (min_bars_back, max_bars_back); 0 = current bar
        aggregation: Calculation mode ("OnBarClose")
        ref_type: Indicator, Field or Const

    Examples:
        ValueRef("RSI", "1h", "Close", (14,))                  # RSI(14) on the hourly close
        ValueRef("MACD", "4h", "Close", (12, 26, 9), "Signal")  # MACD signal line
        ValueRef.field("CLOSE", offset=1)                      # Previous close
        ValueRef.const(30)                                     # Literal 30
    """
    indicator_id: str = ""
    timeframe: str = ""
    input_channel: str = ""
    params: Tuple[float, ...] = ()
    output_channel: str = DEFAULT_OUTPUT
    offset_range: Tuple[int, int] = (0, 0)
    aggregation: str = DEFAULT_AGGREGATION
    ref_type: RefType = RefType.INDICATOR

    def __post_init__(self):
        """Validate and normalize fields."""
        object.__setattr__(self, "ref_type", RefType.parse(self.ref_type))
        object.__setattr__(self, "params", _coerce_params(self.params))
        object.__setattr__(self, "offset_range", _coerce_offset(self.offset_range))
        object.__setattr__(self, "output_channel", self.output_channel or DEFAULT_OUTPUT)
        object.__setattr__(self, "aggregation", self.aggregation or DEFAULT_AGGREGATION)

        low, high = self.offset_range
        if low < 0 or high < 0:
            raise ValueError(
                f"ValueRef: offsetRange values must be >= 0, got [{low}, {high}]"
            )
        if low > high:
            raise ValueError(
                f"ValueRef: offsetRange min ({low}) must be <= max ({high})"
            )

        if self.ref_type == RefType.INDICATOR and not self.indicator_id:
            raise ValueError("ValueRef: indicator is required for Indicator refs")
        if self.ref_type == RefType.FIELD:
            key = normalize_field_key(self.input_channel)
            if not key:
                raise ValueError("ValueRef: input (kline field) is required for Field refs")
            object.__setattr__(self, "input_channel", key)
        if self.ref_type == RefType.CONST:
            text = (self.input_channel or "0").strip() or "0"
            try:
                float(text)
            except ValueError:
                raise ValueError(f"ValueRef: Const input must be numeric, got {text!r}") from None
            object.__setattr__(self, "input_channel", text)

    # -------------------------------------------------------------------------
    # Constructors
    # -------------------------------------------------------------------------

    @classmethod
    def field(
        cls,
        name: str,
        timeframe: str = "",
        offset: int = 0,
        aggregation: str = DEFAULT_AGGREGATION,
    ) -> "ValueRef":
        """Reference a raw kline column."""
        return cls(
            timeframe=timeframe,
            input_channel=name,
            offset_range=(offset, offset),
            aggregation=aggregation,
            ref_type=RefType.FIELD,
        )

    @classmethod
    def const(
        cls,
        value: Union[int, float, str],
        timeframe: str = "",
        aggregation: str = DEFAULT_AGGREGATION,
    ) -> "ValueRef":
        """Wrap a numeric literal as a Const ref."""
        text = value.strip() if isinstance(value, str) else format_number(value)
        return cls(
            timeframe=timeframe,
            input_channel=text,
            aggregation=aggregation,
            ref_type=RefType.CONST,
        )

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def is_indicator(self) -> bool:
        return self.ref_type == RefType.INDICATOR

    @property
    def is_field(self) -> bool:
        return self.ref_type == RefType.FIELD

    @property
    def is_literal(self) -> bool:
        return self.ref_type == RefType.CONST

    @property
    def literal_value(self) -> Optional[float]:
        """Numeric value of a Const ref, None for series refs."""
        if not self.is_literal:
            return None
        return float(self.input_channel)

    @property
    def params_key(self) -> str:
        return ",".join(format_number(p) for p in self.params)

    @property
    def indicator_key(self) -> str:
        """Identity of the indicator instance (code|timeframe|input|params)."""
        return "|".join([
            self.indicator_id,
            normalize_timeframe(self.timeframe),
            self.input_channel,
            self.params_key,
        ])

    @property
    def series_key(self) -> str:
        """Identity of the output column (code|timeframe|input|output|params)."""
        if self.is_literal:
            return f"const|{self.input_channel}"
        if self.is_field:
            return f"field|{normalize_timeframe(self.timeframe)}|{self.input_channel}"
        return "|".join([
            self.indicator_id,
            normalize_timeframe(self.timeframe),
            self.input_channel,
            self.output_channel,
            self.params_key,
        ])

    @property
    def min_bars_back(self) -> int:
        return self.offset_range[0]

    @property
    def max_bars_back(self) -> int:
        return self.offset_range[1]

    def with_offset(self, min_bars_back: int, max_bars_back: Optional[int] = None) -> "ValueRef":
        """Return a copy addressing a different historical window."""
        high = min_bars_back if max_bars_back is None else max_bars_back
        return replace(self, offset_range=(min_bars_back, high))

    def with_output(self, output_channel: str) -> "ValueRef":
        """Return a copy reading a different output channel."""
        return replace(self, output_channel=output_channel)

    # -------------------------------------------------------------------------
    # Wire mapping
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the engine's wire form."""
        return {
            "refType": self.ref_type.value,
            "indicator": self.indicator_id,
            "timeframe": self.timeframe,
            "input": self.input_channel,
            "params": [wire_number(p) for p in self.params],
            "output": self.output_channel,
            "offsetRange": [self.offset_range[0], self.offset_range[1]],
            "calcMode": self.aggregation,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValueRef":
        """
        Parse the wire form. Missing optional keys take engine defaults.

        Raises:
            ConfigFormatError: If the document is not a valid ValueRef
        """
        if not isinstance(data, dict):
            raise ConfigFormatError(f"ValueRef must be an object, got {type(data).__name__}")
        try:
            return cls(
                indicator_id=str(data.get("indicator") or ""),
                timeframe=str(data.get("timeframe") or ""),
                input_channel=str(data.get("input") or ""),
                params=data.get("params") or (),
                output_channel=str(data.get("output") or DEFAULT_OUTPUT),
                offset_range=data.get("offsetRange") or (0, 0),
                aggregation=str(data.get("calcMode") or DEFAULT_AGGREGATION),
                ref_type=data.get("refType") or RefType.INDICATOR,
            )
        except ValueError as e:
            raise ConfigFormatError(str(e)) from e

    def __repr__(self) -> str:
        if self.is_literal:
            return f"Const({self.input_channel})"
        offset = "" if self.offset_range == (0, 0) else f", offset={list(self.offset_range)}"
        if self.is_field:
            return f"Field({self.input_channel!r}{offset})"
        return f"Ref({self.series_key!r}{offset})"


# A right-hand operand authored in the editor: another series or a plain number.
Operand = Union[ValueRef, float]


def as_value_ref(operand: Operand, like: Optional[ValueRef] = None) -> ValueRef:
    """
    Normalize an operand to a ValueRef.

    Literals become Const refs that copy timeframe and calcMode from `like`
    (the condition's left ref), matching how the engine aligns them.
    """
    if isinstance(operand, ValueRef):
        return operand
    if isinstance(operand, bool):
        raise TypeError(f"Operand must be a ValueRef or number, got {operand!r}")
    timeframe = like.timeframe if like is not None else ""
    aggregation = like.aggregation if like is not None else DEFAULT_AGGREGATION
    return ValueRef.const(operand, timeframe=timeframe, aggregation=aggregation)


def operand_from_wire(raw: Any) -> Operand:
    """
    Map one MethodConfig arg back to an editor operand.

    Const refs, bare numbers and numeric strings become floats; ValueRef
    objects stay refs.

    Raises:
        ConfigFormatError: If the arg is neither a ref nor a number
    """
    if isinstance(raw, ValueRef):
        return raw.literal_value if raw.is_literal else raw
    if isinstance(raw, dict):
        ref = ValueRef.from_dict(raw)
        return ref.literal_value if ref.is_literal else ref
    if isinstance(raw, bool):
        raise ConfigFormatError(f"Condition arg must be a ValueRef or number, got {raw!r}")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            raise ConfigFormatError(f"Condition arg is not numeric: {raw!r}") from None
    raise ConfigFormatError(f"Condition arg must be a ValueRef or number, got {raw!r}")
