"""
CLI modules for the strategy logic tools.

This package contains:
- argparser: argument parsing and subcommand definitions
- subcommands: handle_* functions dispatched from strategy_cli.py
- utils: console and display helpers
"""

from .utils import (
    console,
    emit_json,
    print_header,
    print_diagnostics,
    print_summary,
    print_branch_results,
    write_output,
)

__all__ = [
    "console",
    "emit_json",
    "print_header",
    "print_diagnostics",
    "print_summary",
    "print_branch_results",
    "write_output",
]
