"""
Editor session: one strategy being created or edited.

Holds the working tree, the indicator selection and the trade config, and
hands the compiled payload to an injected submitter (the HTTP client lives
outside this package). A failed submission leaves the session as it was so
the user can retry.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ..config.constants import DEFAULT_TIMEFRAME_SEC
from ..utils.logger import get_logger
from .compiler import CompileResult, compile_strategy_logic, count_live_conditions, decompile_logic
from .errors import DiagnosticCode, SubmissionError
from .indicators import IndicatorSelection, SelectedIndicator
from .model import StrategyLogicTree
from .preview import (
    SummarySection,
    build_logic_json,
    build_logic_summary,
    used_indicator_labels,
)
from .reducers import retarget_indicator
from .resolve import IndicatorUsage, extract_indicators, indicator_usages
from .trade_config import (
    StrategyConfig,
    StrategyTradeConfig,
    default_trade_config,
    merge_trade_config,
    resolve_trade_timeframe_sec,
)

# Sends the payload to the backend; raises on failure
Submitter = Callable[[Dict[str, Any]], Any]


@dataclass(frozen=True)
class SessionPreview:
    """Everything the review screen shows."""
    summary: Tuple[SummarySection, ...]
    logic_json: str
    used_indicators: Tuple[str, ...]
    result: CompileResult


class StrategyEditorSession:
    """
    Working state of one editing session.

    Example:
        session = StrategyEditorSession(name="RSI dip")
        session.apply(add_group, "entry.long", "open-long")
        session.submit(http_client.create_strategy)
    """

    def __init__(
        self,
        name: str = "",
        description: str = "",
        tree: Optional[StrategyLogicTree] = None,
        selection: Optional[IndicatorSelection] = None,
        trade: Optional[StrategyTradeConfig] = None,
        exchange_api_key_id: Optional[int] = None,
    ):
        self.name = name
        self.description = description
        self.tree = tree if tree is not None else StrategyLogicTree.empty()
        self.selection = selection if selection is not None else IndicatorSelection()
        self.trade = trade if trade is not None else default_trade_config()
        self.exchange_api_key_id = exchange_api_key_id

    @classmethod
    def from_strategy_config(
        cls,
        config: Union[StrategyConfig, Dict[str, Any]],
        name: str = "",
        description: str = "",
        selection: Optional[IndicatorSelection] = None,
    ) -> "StrategyEditorSession":
        """
        Hydrate a session from a persisted strategy (edit/clone flow).

        When no selection is given it is rebuilt from the refs in the logic.
        """
        if not isinstance(config, StrategyConfig):
            config = StrategyConfig.from_dict(config)
        return cls(
            name=name,
            description=description,
            tree=decompile_logic(config.logic),
            selection=selection if selection is not None else extract_indicators(config.logic),
            trade=config.trade,
        )

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def apply(self, reducer: Callable[..., StrategyLogicTree], *args, **kwargs) -> StrategyLogicTree:
        """
        Run a reducer against the current tree and keep its result.

        If the reducer raises, the tree is unchanged.
        """
        self.tree = reducer(self.tree, *args, **kwargs)
        return self.tree

    def add_indicator(self, indicator: SelectedIndicator) -> None:
        """Select an indicator (raises DuplicateIndicatorError on a duplicate)."""
        self.selection = self.selection.add(indicator)

    def update_indicator(self, indicator: SelectedIndicator) -> None:
        """Replace an indicator and re-point the conditions that read it."""
        old = self.selection.get(indicator.id)
        if old is None:
            raise KeyError(indicator.id)
        selection = self.selection.replace(indicator)
        self.tree = retarget_indicator(self.tree, old, indicator)
        self.selection = selection

    def remove_indicator(self, indicator_id: str) -> Tuple[IndicatorUsage, ...]:
        """
        Drop an indicator from the selection.

        Conditions that read it are kept and show up as dangling references.

        Returns:
            The usages that are now dangling
        """
        indicator = self.selection.get(indicator_id)
        if indicator is None:
            raise KeyError(indicator_id)
        usages = indicator_usages(self.tree, indicator)
        self.selection = self.selection.remove(indicator_id)
        return usages

    def usages(self, indicator_id: str) -> Tuple[IndicatorUsage, ...]:
        indicator = self.selection.get(indicator_id)
        if indicator is None:
            raise KeyError(indicator_id)
        return indicator_usages(self.tree, indicator)

    def update_trade(self, partial: Dict[str, Any]) -> StrategyTradeConfig:
        """Merge trade settings over the current ones."""
        self.trade = merge_trade_config(partial, defaults=self.trade)
        return self.trade

    # -------------------------------------------------------------------------
    # Output
    # -------------------------------------------------------------------------

    def compile(self) -> CompileResult:
        """Compile the current tree, logging a one-line summary and any dangling refs."""
        result = compile_strategy_logic(self.tree, self.selection)
        log = get_logger()
        enabled = sum(1 for _, b in result.config.items() if b.enabled)
        log.compile(
            branches=enabled,
            conditions=count_live_conditions(result.config),
            corrections=result.corrections,
            warnings=len(result.warnings),
        )
        for diagnostic in result.diagnostics:
            if diagnostic.code == DiagnosticCode.DANGLING_REFERENCE:
                log.reference(
                    "DANGLING",
                    str(diagnostic.details.get("ref", "")),
                    diagnostic.message,
                    path=diagnostic.path,
                )
        return result

    def preview(self) -> SessionPreview:
        result = self.compile()
        return SessionPreview(
            summary=tuple(build_logic_summary(self.tree, self.selection)),
            logic_json=build_logic_json(result.config),
            used_indicators=used_indicator_labels(self.tree, self.selection),
            result=result,
        )

    def effective_trade(self) -> StrategyTradeConfig:
        """Trade config to submit; an untouched 60s timeframe follows the indicators."""
        if len(self.selection) > 0 and self.trade.timeframe_sec == DEFAULT_TIMEFRAME_SEC:
            return replace(self.trade, timeframe_sec=resolve_trade_timeframe_sec(self.selection))
        return self.trade

    def build_strategy_config(self) -> StrategyConfig:
        return StrategyConfig(trade=self.effective_trade(), logic=self.compile().config)

    def build_payload(self) -> Dict[str, Any]:
        """Request body for strategy create/update."""
        payload: Dict[str, Any] = {
            "name": self.name.strip(),
            "description": self.description.strip(),
            "configJson": self.build_strategy_config().to_dict(),
        }
        if self.exchange_api_key_id is not None:
            payload["exchangeApiKeyId"] = self.exchange_api_key_id
        return payload

    def submit(self, submitter: Submitter) -> Any:
        """
        Build the payload and hand it to `submitter`.

        Returns:
            Whatever the submitter returns

        Raises:
            SubmissionError: If the name is empty or the submitter raised;
                the backend message is kept verbatim and the session is unchanged
        """
        log = get_logger()
        name = self.name.strip()
        if not name:
            raise SubmissionError("Strategy name is required")
        payload = self.build_payload()
        log.submission("SENT", name)
        try:
            response = submitter(payload)
        except Exception as e:
            log.submission("FAILED", name, error=str(e))
            raise SubmissionError(str(e), cause=e) from e
        log.submission("ACCEPTED", name)
        return response
