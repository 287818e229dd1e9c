"""
CLI utility functions for the strategy logic tools.

Contains:
- Shared console
- Display helpers (print_header, print_diagnostics, print_summary, print_branch_results)
- Output helpers (emit_json, write_output)
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from ..config.config import get_config
from ..strategy_logic.errors import Diagnostic, Severity
from ..strategy_logic.evaluate import BranchResult
from ..strategy_logic.preview import SummarySection


# Global Console
console = Console()


def print_header(title: str, subtitle: str = ""):
    """Print a command header panel."""
    body = f"[bold cyan]{title}[/]"
    if subtitle:
        body += f"\n{subtitle}"
    console.print(Panel(body, border_style="cyan"))


def emit_json(success: bool, message: str, data: Any = None) -> int:
    """Print the standard JSON envelope and return the exit code."""
    output = {
        "status": "pass" if success else "fail",
        "message": message,
        "data": data,
    }
    print(json.dumps(output, indent=2, default=str))
    return 0 if success else 1


def write_output(text: str, path: Optional[str]) -> None:
    """Write text to `path`, or print it when no path is given."""
    if not path:
        console.print(text, markup=False, highlight=False, soft_wrap=True)
        return
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
    console.print(f"[dim]Written to: {out}[/]")


def print_diagnostics(diagnostics: Sequence[Diagnostic], show_info: bool = True) -> None:
    """Print compile diagnostics as a table."""
    shown = [d for d in diagnostics if show_info or d.severity == Severity.WARNING]
    if not shown:
        console.print("[bold green]OK No diagnostics[/]")
        return
    table = Table(title="Diagnostics", show_lines=False)
    table.add_column("Severity", width=8)
    table.add_column("Code", style="bold")
    table.add_column("Path", style="dim")
    table.add_column("Message")
    for d in shown:
        style = "yellow" if d.severity == Severity.WARNING else "cyan"
        table.add_row(f"[{style}]{d.severity.value.upper()}[/]", d.code.value, d.path, d.message)
    console.print(table)


def print_summary(sections: Sequence[SummarySection], used: Iterable[str] = ()) -> None:
    """Print the logic summary as a tree."""
    if not sections:
        console.print("[yellow]No conditions configured[/]")
        return
    for section in sections:
        style = "bold" if section.enabled else "dim"
        root = Tree(f"[{style}]{section.title}[/]")
        for group in section.groups:
            node = root.add(group.title if group.enabled else f"[dim]{group.title}[/]")
            for line in group.lines:
                node.add(line)
        console.print(root)
    used = list(used)
    if used:
        console.print(f"\n[dim]Indicators used: {', '.join(used)}[/]")


def print_branch_results(results: Dict[str, BranchResult]) -> None:
    """Print one row per branch with its quorum outcome."""
    table = Table(title="Branch Evaluation")
    table.add_column("Branch", style="bold")
    table.add_column("Result")
    table.add_column("Quorum", style="dim")
    table.add_column("Actions")
    for slot, result in results.items():
        if not result.evaluated:
            table.add_row(slot, "[dim]DISABLED[/]", "", "")
            continue
        status = "[bold green]PASS[/]" if result.passed else "[red]FAIL[/]"
        actions = ", ".join(
            f"{a.method}({', '.join(str(arg) for arg in a.args)})" for a in result.actions
        )
        table.add_row(slot, status, str(result.quorum), actions)
    console.print(table)


def print_config_line() -> None:
    """Print the active editor limits (verbose mode)."""
    console.print(f"[dim]{get_config().summary_short()}[/]")
