#!/usr/bin/env python3
"""
Strategy Logic CLI

Command-line shell for the strategy logic package. This is a PURE SHELL:
it parses arguments, calls src/strategy_logic and prints results.

  python strategy_cli.py compile drafts/rsi_dip.yml
  python strategy_cli.py check drafts/rsi_dip.yml --strict
  python strategy_cli.py summary drafts/rsi_dip.yml
  python strategy_cli.py decompile logic.json -o drafts/restored.yml
"""

import logging
import os
import sys
from typing import List, Optional

# Add src to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.config.config import get_config
from src.utils.logger import setup_logger
from src.cli.argparser import setup_argparse
from src.cli.subcommands import (
    handle_check,
    handle_compile,
    handle_decompile,
    handle_evaluate,
    handle_payload,
    handle_summary,
)
from src.cli.utils import console, print_config_line


HANDLERS = {
    "compile": handle_compile,
    "check": handle_check,
    "summary": handle_summary,
    "payload": handle_payload,
    "decompile": handle_decompile,
    "evaluate": handle_evaluate,
}


def _log_level(args) -> str:
    if args.debug:
        return "DEBUG"
    if args.quiet:
        return "WARNING"
    if args.verbose:
        return "INFO"
    return get_config().log.level


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    # Parse CLI arguments FIRST (before any config or logging)
    args = setup_argparse(argv)

    level = _log_level(args)
    log_config = get_config().log
    setup_logger(log_dir=log_config.log_dir if log_config.log_to_file else None, log_level=level)
    # Module loggers (compiler clamp traces) only surface in debug mode
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.verbose:
        print_config_line()

    handler = HANDLERS.get(args.command)
    if handler is None:
        console.print(f"[yellow]Usage: strategy_cli.py {{{'|'.join(HANDLERS)}}} --help[/]")
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
