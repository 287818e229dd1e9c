"""
Strategy condition logic: model, quorum compiler, resolver and previews.

Modules:
- value_refs: ValueRef addressing of series columns and literals
- indicators: the selected-indicator catalogue
- model: editable tree (branch -> container -> group -> condition)
- logic_config: compiled wire config consumed by the engine
- quorum: the required/optional pass rule shared by every level
- compiler: tree -> config (and back), with diagnostics
- resolve: dangling references and used indicator outputs
- reducers: pure tree edits for the editor
- preview: condition previews, summaries and canonical JSON
- evaluate: reference evaluator for compiled configs
- trade_config / session / loader: trade settings, editing session, file IO
"""

from .errors import (
    ConfigFormatError,
    DanglingReferenceError,
    Diagnostic,
    DiagnosticCode,
    DuplicateIndicatorError,
    EditLimitError,
    NodeNotFoundError,
    Severity,
    StrategyLogicError,
    SubmissionError,
)
from .value_refs import Operand, RefType, ValueRef, normalize_timeframe
from .indicators import IndicatorOutput, IndicatorSelection, SelectedIndicator
from .registry import METHOD_REGISTRY, MethodKind, MethodSpec, get_method_spec, validate_condition_method
from .logic_config import (
    ActionSetConfig,
    ConditionContainerConfig,
    ConditionGroupConfig,
    ConditionGroupSetConfig,
    MethodConfig,
    StrategyLogicBranchConfig,
    StrategyLogicConfig,
)
from .model import (
    BranchSlot,
    ConditionContainer,
    ConditionGroup,
    ConditionItem,
    LogicBranch,
    StrategyLogicTree,
)
from .quorum import QuorumPlan, QuorumResult, evaluate_quorum, plan_quorum
from .resolve import (
    DanglingReference,
    ResolvedRef,
    dangling_references,
    extract_indicators,
    resolve_value_ref,
    used_outputs,
)
from .compiler import CompileResult, compile_logic, compile_strategy_logic, decompile_logic
from .preview import (
    build_condition_preview,
    build_logic_json,
    build_logic_summary,
    format_value_ref_label,
    render_summary_text,
)
from .evaluate import LogicEvaluator, MappingSnapshot, ReasonCode
from .trade_config import StrategyConfig, StrategyTradeConfig, default_trade_config, merge_trade_config
from .session import StrategyEditorSession
from .loader import StrategyDraft, load_draft, load_indicators, load_logic_config

__all__ = [
    # Errors
    "StrategyLogicError",
    "ConfigFormatError",
    "DanglingReferenceError",
    "DuplicateIndicatorError",
    "EditLimitError",
    "NodeNotFoundError",
    "SubmissionError",
    "Diagnostic",
    "DiagnosticCode",
    "Severity",
    # References
    "Operand",
    "RefType",
    "ValueRef",
    "normalize_timeframe",
    "IndicatorOutput",
    "IndicatorSelection",
    "SelectedIndicator",
    # Methods
    "METHOD_REGISTRY",
    "MethodKind",
    "MethodSpec",
    "get_method_spec",
    "validate_condition_method",
    # Config
    "ActionSetConfig",
    "ConditionContainerConfig",
    "ConditionGroupConfig",
    "ConditionGroupSetConfig",
    "MethodConfig",
    "StrategyLogicBranchConfig",
    "StrategyLogicConfig",
    # Tree
    "BranchSlot",
    "ConditionContainer",
    "ConditionGroup",
    "ConditionItem",
    "LogicBranch",
    "StrategyLogicTree",
    # Quorum / compile
    "QuorumPlan",
    "QuorumResult",
    "evaluate_quorum",
    "plan_quorum",
    "CompileResult",
    "compile_logic",
    "compile_strategy_logic",
    "decompile_logic",
    # Resolve
    "DanglingReference",
    "ResolvedRef",
    "dangling_references",
    "extract_indicators",
    "resolve_value_ref",
    "used_outputs",
    # Preview
    "build_condition_preview",
    "build_logic_json",
    "build_logic_summary",
    "format_value_ref_label",
    "render_summary_text",
    # Evaluate
    "LogicEvaluator",
    "MappingSnapshot",
    "ReasonCode",
    # Trade / session / IO
    "StrategyConfig",
    "StrategyTradeConfig",
    "default_trade_config",
    "merge_trade_config",
    "StrategyEditorSession",
    "StrategyDraft",
    "load_draft",
    "load_indicators",
    "load_logic_config",
]
