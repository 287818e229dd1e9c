"""
Strategy Logic - condition model and quorum compiler for trading strategies.

Turns an editable tree of entry/exit conditions into the logic config the
trading engine evaluates, and renders previews and summaries of it.
"""

__version__ = "1.0.0"
__author__ = "TRADE"

from .config import get_config
from .strategy_logic import (
    StrategyEditorSession,
    StrategyLogicConfig,
    StrategyLogicTree,
    compile_strategy_logic,
    decompile_logic,
)

__all__ = [
    "__version__",
    "get_config",
    "StrategyEditorSession",
    "StrategyLogicConfig",
    "StrategyLogicTree",
    "compile_strategy_logic",
    "decompile_logic",
]
