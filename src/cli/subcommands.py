"""
Subcommand handlers for the strategy logic CLI.

All handle_* functions are module-level and accept an `args` namespace.
They are dispatched from main() in strategy_cli.py and return an exit code.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Sequence

from ..strategy_logic.errors import DiagnosticCode, Severity, StrategyLogicError
from ..strategy_logic.evaluate import LogicEvaluator, MappingSnapshot
from ..strategy_logic.loader import (
    StrategyDraft,
    dump_yaml,
    load_draft,
    load_indicators,
    logic_section,
    read_document,
)
from ..strategy_logic.logic_config import StrategyLogicConfig
from ..strategy_logic.preview import build_logic_json, render_summary_text
from ..strategy_logic.session import StrategyEditorSession
from .utils import (
    console,
    emit_json,
    print_branch_results,
    print_diagnostics,
    print_header,
    print_summary,
    write_output,
)


# =============================================================================
# SHARED HELPERS
# =============================================================================

def _load_session(args) -> StrategyEditorSession:
    """Load the draft named by args.draft, with an optional --indicators override."""
    draft = load_draft(args.draft)
    selection = load_indicators(args.indicators) if getattr(args, "indicators", None) else draft.selection
    return StrategyEditorSession(
        name=draft.name,
        description=draft.description,
        tree=draft.tree,
        selection=selection,
        trade=draft.trade,
    )


def _fail(error: Exception, json_output: bool = False) -> int:
    if json_output:
        return emit_json(False, str(error))
    console.print(f"\n[bold red]FAIL {error}[/]")
    return 1


def _strategy_document(raw: Any) -> Dict[str, Any]:
    """Normalize a logic config, strategy config or payload to {"trade"?, "logic"}."""
    if isinstance(raw, dict) and isinstance(raw.get("configJson"), dict):
        raw = raw["configJson"]
    if isinstance(raw, dict) and "logic" in raw:
        return raw
    return {"logic": logic_section(raw)}


def _series_values(raw: Any) -> Dict[str, Sequence[Any]]:
    if not isinstance(raw, dict):
        raise StrategyLogicError("Values file must map series keys to values (newest first)")
    return {
        str(key): value if isinstance(value, list) else [value]
        for key, value in raw.items()
    }


# =============================================================================
# HANDLERS
# =============================================================================

def handle_compile(args) -> int:
    """Handle `compile` subcommand."""
    try:
        session = _load_session(args)
        result = session.compile()
    except (FileNotFoundError, StrategyLogicError) as e:
        return _fail(e, args.json_output)

    if args.json_output:
        return emit_json(True, f"Compiled {session.name or args.draft}", result.to_dict())

    write_output(build_logic_json(result.config, compact=args.compact), args.output)
    if result.diagnostics:
        print_diagnostics(result.diagnostics)
    return 0


def handle_check(args) -> int:
    """Handle `check` subcommand. Fails on dangling references (and warnings with --strict)."""
    try:
        session = _load_session(args)
        result = session.compile()
    except (FileNotFoundError, StrategyLogicError) as e:
        return _fail(e, args.json_output)

    failed = result.has_dangling or (args.strict and bool(result.warnings))
    message = (
        f"{len(result.by_code(DiagnosticCode.DANGLING_REFERENCE))} dangling, "
        f"{len(result.warnings)} warnings, {result.corrections} thresholds clamped"
    )

    if args.json_output:
        return emit_json(not failed, message, [d.to_dict() for d in result.diagnostics])

    print_header("STRATEGY CHECK", f"Draft: {args.draft}")
    print_diagnostics(result.diagnostics)
    if failed:
        console.print(f"\n[bold red]FAIL {message}[/]")
        return 1
    console.print(f"\n[bold green]OK {message}[/]")
    return 0


def handle_summary(args) -> int:
    """Handle `summary` subcommand."""
    try:
        session = _load_session(args)
        preview = session.preview()
    except (FileNotFoundError, StrategyLogicError) as e:
        return _fail(e)

    if args.plain:
        print(render_summary_text(preview.summary))
        return 0

    print_header(session.name or "STRATEGY SUMMARY", session.description)
    print_summary(preview.summary, preview.used_indicators)
    warnings = [d for d in preview.result.diagnostics if d.severity == Severity.WARNING]
    if warnings:
        console.print()
        print_diagnostics(warnings)
    return 0


def handle_payload(args) -> int:
    """Handle `payload` subcommand."""
    try:
        session = _load_session(args)
        if args.name:
            session.name = args.name
        if args.api_key_id is not None:
            session.exchange_api_key_id = args.api_key_id
        payload = session.build_payload()
    except (FileNotFoundError, StrategyLogicError) as e:
        return _fail(e)

    write_output(json.dumps(payload, indent=2, ensure_ascii=False), args.output)
    return 0


def handle_decompile(args) -> int:
    """Handle `decompile` subcommand."""
    try:
        document = _strategy_document(read_document(args.config))
        selection = load_indicators(args.indicators) if args.indicators else None
        session = StrategyEditorSession.from_strategy_config(
            document, name=args.name, selection=selection
        )
    except (FileNotFoundError, StrategyLogicError) as e:
        return _fail(e)

    draft = StrategyDraft(
        name=session.name,
        description=session.description,
        selection=session.selection,
        tree=session.tree,
        trade=session.trade if "trade" in document else None,
    )
    write_output(dump_yaml(draft.to_dict()), args.output)
    return 0


def handle_evaluate(args) -> int:
    """Handle `evaluate` subcommand."""
    try:
        config = StrategyLogicConfig.from_dict(logic_section(read_document(args.config)))
        snapshot = MappingSnapshot(_series_values(read_document(args.values)))
    except (FileNotFoundError, StrategyLogicError) as e:
        return _fail(e, args.json_output)

    results = LogicEvaluator(snapshot).evaluate_logic(config)

    if args.json_output:
        data = {
            slot: {
                "evaluated": r.evaluated,
                "passed": r.passed,
                "quorum": str(r.quorum) if r.quorum is not None else None,
                "actions": [a.to_dict() for a in r.actions],
            }
            for slot, r in results.items()
        }
        passed = [slot for slot, r in results.items() if r.passed]
        return emit_json(True, f"{len(passed)} branch(es) passed", data)

    print_branch_results(results)
    return 0
