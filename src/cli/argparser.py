"""
Argument parser setup for the strategy logic CLI.

Defines all subcommands and their arguments:
- compile: draft -> logic config JSON plus diagnostics
- check: dangling references, unused indicators, clamped thresholds
- summary: human-readable summary of a draft
- payload: create/update request body for a draft
- decompile: compiled config -> editable draft YAML
- evaluate: run a compiled config against a values file
"""

import argparse
from typing import List, Optional


def setup_argparse(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments for strategy_cli.

    Supports:
      compile DRAFT            Compile a draft to logic config JSON
      check DRAFT              Report diagnostics; non-zero exit on dangling refs
      summary DRAFT            Print the condition summary
      payload DRAFT            Build the strategy create/update body
      decompile CONFIG         Rebuild an editable draft from a compiled config
      evaluate CONFIG VALUES   Evaluate branches against series values
    """
    parser = build_parser()
    return parser.parse_args(argv)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="strategy_cli.py",
        description="Strategy Logic - condition model and quorum compiler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python strategy_cli.py compile drafts/rsi_dip.yml
  python strategy_cli.py compile drafts/rsi_dip.yml --compact -o out/logic.json
  python strategy_cli.py check drafts/rsi_dip.yml --indicators selection.yml
  python strategy_cli.py summary drafts/rsi_dip.yml
  python strategy_cli.py decompile out/logic.json -o drafts/restored.yml
  python strategy_cli.py evaluate out/logic.json values.yml
        """
    )

    # Verbosity: mutually exclusive group (-q / -v / --debug)
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        default=False,
        help="Quiet mode: WARNING only"
    )
    verbosity.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Verbose mode: INFO plus config line"
    )
    verbosity.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Debug mode: full DEBUG logging (threshold corrections, resolution)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    _setup_compile_subcommand(subparsers)
    _setup_check_subcommand(subparsers)
    _setup_summary_subcommand(subparsers)
    _setup_payload_subcommand(subparsers)
    _setup_decompile_subcommand(subparsers)
    _setup_evaluate_subcommand(subparsers)

    return parser


def _add_indicators_arg(parser) -> None:
    parser.add_argument(
        "--indicators",
        help="Indicator selection file (overrides the draft's indicators)"
    )


def _setup_compile_subcommand(subparsers) -> None:
    compile_parser = subparsers.add_parser("compile", help="Compile a draft to logic config JSON")
    compile_parser.add_argument("draft", help="Draft YAML/JSON path")
    _add_indicators_arg(compile_parser)
    compile_parser.add_argument("--compact", action="store_true", help="Single-line JSON")
    compile_parser.add_argument("-o", "--output", help="Write JSON to this file instead of stdout")
    compile_parser.add_argument("--json", action="store_true", dest="json_output", help="Output result envelope as JSON")


def _setup_check_subcommand(subparsers) -> None:
    check_parser = subparsers.add_parser("check", help="Report compile diagnostics")
    check_parser.add_argument("draft", help="Draft YAML/JSON path")
    _add_indicators_arg(check_parser)
    check_parser.add_argument("--strict", action="store_true", help="Fail on any warning, not only dangling references")
    check_parser.add_argument("--json", action="store_true", dest="json_output", help="Output results as JSON")


def _setup_summary_subcommand(subparsers) -> None:
    summary_parser = subparsers.add_parser("summary", help="Print the condition summary of a draft")
    summary_parser.add_argument("draft", help="Draft YAML/JSON path")
    _add_indicators_arg(summary_parser)
    summary_parser.add_argument("--plain", action="store_true", help="Plain text instead of a rich tree")


def _setup_payload_subcommand(subparsers) -> None:
    payload_parser = subparsers.add_parser("payload", help="Build the strategy create/update request body")
    payload_parser.add_argument("draft", help="Draft YAML/JSON path")
    _add_indicators_arg(payload_parser)
    payload_parser.add_argument("--name", help="Override the draft name")
    payload_parser.add_argument("--api-key-id", type=int, dest="api_key_id", help="Exchange API key id")
    payload_parser.add_argument("-o", "--output", help="Write JSON to this file instead of stdout")


def _setup_decompile_subcommand(subparsers) -> None:
    decompile_parser = subparsers.add_parser("decompile", help="Rebuild an editable draft from a compiled config")
    decompile_parser.add_argument("config", help="Logic config, strategy config or payload (YAML/JSON)")
    _add_indicators_arg(decompile_parser)
    decompile_parser.add_argument("--name", default="", help="Name written into the draft")
    decompile_parser.add_argument("-o", "--output", help="Write YAML to this file instead of stdout")


def _setup_evaluate_subcommand(subparsers) -> None:
    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate a compiled config against series values")
    evaluate_parser.add_argument("config", help="Logic config, strategy config or payload (YAML/JSON)")
    evaluate_parser.add_argument("values", help="Mapping of series key -> values, newest first (YAML/JSON)")
    evaluate_parser.add_argument("--json", action="store_true", dest="json_output", help="Output results as JSON")
