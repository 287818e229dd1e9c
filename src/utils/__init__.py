"""
Utility modules.
"""

from .logger import get_logger, setup_logger, StrategyLogger
from .helpers import safe_float, safe_int, safe_str, format_number, wire_number

__all__ = [
    # Logger
    "get_logger",
    "setup_logger",
    "StrategyLogger",
    # Type conversion helpers
    "safe_float",
    "safe_int",
    "safe_str",
    "format_number",
    "wire_number",
]
