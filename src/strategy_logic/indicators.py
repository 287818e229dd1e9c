"""
Selected indicators: the read-only catalogue of what a strategy may reference.

The editor shell owns the selection; this module models it so the resolver
can detect dangling references and the reducers can re-point refs when an
indicator is edited.

Persisted shape (one entry):
    {"id": "ind-1", "code": "RSI",
     "config": {"indicator": "RSI", "timeframe": "1h", "input": "Close",
                "params": [14], "output": "Value", "offsetRange": [0, 0],
                "calcMode": "OnBarClose"},
     "outputs": [{"key": "Value", "hint": "RSI"}]}
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from ..utils.helpers import format_number, wire_number
from .errors import ConfigFormatError, DuplicateIndicatorError
from .value_refs import (
    DEFAULT_AGGREGATION,
    DEFAULT_OUTPUT,
    RefType,
    ValueRef,
    normalize_timeframe,
)


@dataclass(frozen=True)
class IndicatorOutput:
    """One declared output channel of an indicator (key plus display hint)."""
    key: str
    hint: str = ""

    def __post_init__(self):
        if not self.key:
            raise ValueError("IndicatorOutput: key is required")

    @property
    def label(self) -> str:
        return self.hint or self.key

    def to_dict(self) -> Dict[str, str]:
        return {"key": self.key, "hint": self.hint}


@dataclass(frozen=True)
class SelectedIndicator:
    """
    One indicator instance chosen by the user.

    Attributes:
        id: Selection id, stable for the editing session
        code: Indicator code ("RSI", "MACD", "BOLL")
        timeframe: Timeframe label the indicator runs on
        input_channel: Source column
        params: Ordered numeric parameters
        outputs: Declared output channels; first is the default
        offset_range: Default historical window for refs to this indicator
        aggregation: Calculation mode
    """
    id: str
    code: str
    timeframe: str = ""
    input_channel: str = ""
    params: Tuple[float, ...] = ()
    outputs: Tuple[IndicatorOutput, ...] = (IndicatorOutput(DEFAULT_OUTPUT),)
    offset_range: Tuple[int, int] = (0, 0)
    aggregation: str = DEFAULT_AGGREGATION

    def __post_init__(self):
        if not self.id:
            raise ValueError("SelectedIndicator: id is required")
        if not self.code:
            raise ValueError(f"SelectedIndicator '{self.id}': code is required")
        object.__setattr__(self, "params", tuple(float(p) for p in self.params))
        object.__setattr__(self, "offset_range", tuple(int(v) for v in self.offset_range))
        outputs = tuple(
            o if isinstance(o, IndicatorOutput) else IndicatorOutput(str(o))
            for o in self.outputs
        )
        object.__setattr__(self, "outputs", outputs or (IndicatorOutput(DEFAULT_OUTPUT),))

    # -------------------------------------------------------------------------
    # Identity
    # -------------------------------------------------------------------------

    @property
    def indicator_key(self) -> str:
        """Same identity a ValueRef computes from its indicator fields."""
        return self.ref().indicator_key

    @property
    def signature(self) -> str:
        """Duplicate-detection key: two selections with the same signature are the same indicator."""
        return "|".join([
            self.code.strip(),
            self.timeframe.strip().lower(),
            self.input_channel.strip(),
            ",".join(format_number(p) for p in self.params),
            ",".join(str(v) for v in self.offset_range),
            self.aggregation.strip(),
        ])

    @property
    def output_keys(self) -> Tuple[str, ...]:
        return tuple(o.key for o in self.outputs)

    @property
    def default_output(self) -> str:
        return self.outputs[0].key

    def declares_output(self, key: str) -> bool:
        return key in self.output_keys

    def output_hint(self, key: str) -> str:
        for output in self.outputs:
            if output.key == key:
                return output.label
        return key

    @property
    def label(self) -> str:
        """Group label used by pickers: "RSI 1h 14 Close"."""
        params = ",".join(format_number(p) for p in self.params) or "default"
        parts = [self.code, normalize_timeframe(self.timeframe) or "-", params, self.input_channel]
        return " ".join(p for p in parts if p)

    def ref(self, output: Optional[str] = None) -> ValueRef:
        """Build the ValueRef addressing one of this indicator's outputs."""
        return ValueRef(
            indicator_id=self.code,
            timeframe=self.timeframe,
            input_channel=self.input_channel,
            params=self.params,
            output_channel=output or self.default_output,
            offset_range=self.offset_range,
            aggregation=self.aggregation,
            ref_type=RefType.INDICATOR,
        )

    def matches(self, ref: ValueRef) -> bool:
        """Check whether a ref addresses this indicator instance (any output)."""
        return ref.is_indicator and ref.indicator_key == self.indicator_key

    # -------------------------------------------------------------------------
    # Serialization
    # -------------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "config": {
                "indicator": self.code,
                "timeframe": self.timeframe,
                "input": self.input_channel,
                "params": [wire_number(p) for p in self.params],
                "output": self.default_output,
                "offsetRange": list(self.offset_range),
                "calcMode": self.aggregation,
            },
            "outputs": [o.to_dict() for o in self.outputs],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SelectedIndicator":
        """
        Parse a persisted selection entry.

        Accepts the nested {"config": {...}} shape as well as a flat one.

        Raises:
            ConfigFormatError: If required keys are missing or malformed
        """
        if not isinstance(data, dict):
            raise ConfigFormatError(f"Indicator must be an object, got {type(data).__name__}")
        config = data.get("config")
        if not isinstance(config, dict):
            config = data
        code = str(config.get("indicator") or data.get("code") or "").strip()
        raw_outputs = data.get("outputs") or []
        outputs: List[IndicatorOutput] = []
        try:
            for item in raw_outputs:
                if isinstance(item, dict):
                    outputs.append(IndicatorOutput(str(item.get("key") or ""), str(item.get("hint") or "")))
                else:
                    outputs.append(IndicatorOutput(str(item)))
            if not outputs:
                fallback = str(config.get("output") or DEFAULT_OUTPUT)
                outputs.append(IndicatorOutput(fallback, fallback))
            offset = config.get("offsetRange") or (0, 0)
            if len(offset) != 2:
                raise ValueError(f"offsetRange must have two values, got {list(offset)}")
            return cls(
                id=str(data.get("id") or ""),
                code=code,
                timeframe=str(config.get("timeframe") or "").strip(),
                input_channel=str(config.get("input") or "").strip(),
                params=tuple(config.get("params") or ()),
                outputs=tuple(outputs),
                offset_range=tuple(offset),
                aggregation=str(config.get("calcMode") or DEFAULT_AGGREGATION).strip(),
            )
        except (TypeError, ValueError) as e:
            raise ConfigFormatError(f"Invalid indicator {data.get('id')!r}: {e}") from e


@dataclass(frozen=True)
class IndicatorSelection:
    """
    Ordered, immutable set of selected indicators.

    Edits return a new selection. Adding an indicator whose signature is
    already present raises DuplicateIndicatorError.
    """
    indicators: Tuple[SelectedIndicator, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "indicators", tuple(self.indicators))
        seen = set()
        for indicator in self.indicators:
            if indicator.id in seen:
                raise ValueError(f"IndicatorSelection: duplicate indicator id '{indicator.id}'")
            seen.add(indicator.id)

    def __iter__(self) -> Iterator[SelectedIndicator]:
        return iter(self.indicators)

    def __len__(self) -> int:
        return len(self.indicators)

    def __contains__(self, indicator_id: object) -> bool:
        return any(i.id == indicator_id for i in self.indicators)

    def get(self, indicator_id: str) -> Optional[SelectedIndicator]:
        for indicator in self.indicators:
            if indicator.id == indicator_id:
                return indicator
        return None

    def find(self, ref: ValueRef) -> Optional[SelectedIndicator]:
        """Find the selected indicator a ref addresses, if any."""
        if not ref.is_indicator:
            return None
        key = ref.indicator_key
        for indicator in self.indicators:
            if indicator.indicator_key == key:
                return indicator
        return None

    def find_duplicate(self, candidate: SelectedIndicator) -> Optional[SelectedIndicator]:
        signature = candidate.signature
        for indicator in self.indicators:
            if indicator.id != candidate.id and indicator.signature == signature:
                return indicator
        return None

    def add(self, indicator: SelectedIndicator) -> "IndicatorSelection":
        """Return a new selection with `indicator` first (newest on top)."""
        duplicate = self.find_duplicate(indicator)
        if duplicate is not None:
            raise DuplicateIndicatorError(indicator.signature, duplicate.id)
        return IndicatorSelection((indicator,) + self.indicators)

    def replace(self, indicator: SelectedIndicator) -> "IndicatorSelection":
        """Return a new selection with the entry of the same id replaced."""
        if indicator.id not in self:
            raise KeyError(indicator.id)
        duplicate = self.find_duplicate(indicator)
        if duplicate is not None:
            raise DuplicateIndicatorError(indicator.signature, duplicate.id)
        return IndicatorSelection(tuple(
            indicator if i.id == indicator.id else i for i in self.indicators
        ))

    def remove(self, indicator_id: str) -> "IndicatorSelection":
        return IndicatorSelection(tuple(i for i in self.indicators if i.id != indicator_id))

    def output_hint(self, ref: ValueRef) -> str:
        indicator = self.find(ref)
        if indicator is None:
            return ref.output_channel
        return indicator.output_hint(ref.output_channel)

    def to_list(self) -> List[Dict[str, Any]]:
        return [i.to_dict() for i in self.indicators]

    @classmethod
    def from_list(cls, items: Optional[Iterable[Dict[str, Any]]]) -> "IndicatorSelection":
        """
        Parse a persisted selection list.

        Raises:
            ConfigFormatError: If an entry is malformed or ids repeat
        """
        parsed = tuple(SelectedIndicator.from_dict(item) for item in (items or []))
        try:
            return cls(parsed)
        except ValueError as e:
            raise ConfigFormatError(str(e)) from e

