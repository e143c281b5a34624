from __future__ import annotations

"""Terminal rendering helpers for nstakeover.

This module contains presentation-only logic: streamed per-domain lines, the
final summary table and JSON output. It does not perform DNS or detection work.
"""

import json
import sys
from datetime import timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .core import ClassificationResult, Verdict, fmt_td

console = Console()
err_console = Console(stderr=True)


# Shared layout constants.
KV_FIELD_WIDTH = 16
SUMMARY_DOMAIN_WIDTH = 32
SUMMARY_VERDICT_WIDTH = 15
SUMMARY_ATTEMPTS_WIDTH = 8

VERDICT_STYLES = {
    Verdict.VULNERABLE: "bold red",
    Verdict.SAFE: "green",
    Verdict.INDETERMINATE: "yellow",
}


def _table_width() -> int:
    try:
        return max(80, int(console.size.width) - 2)
    except Exception:
        return 100


def _new_table(
    *,
    title: Optional[str] = None,
    box_style: Any = box.SIMPLE,
    show_header: bool = True,
    header_style: Optional[str] = None,
) -> Table:
    return Table(
        title=title,
        box=box_style,
        show_header=show_header,
        header_style=header_style,
        title_justify="left",
        width=_table_width(),
        expand=False,
        pad_edge=False,
    )


def _add_kv_columns(table: Table) -> None:
    table.add_column("Field", style="cyan", width=KV_FIELD_WIDTH, no_wrap=True)
    table.add_column("Value", overflow="fold")


def _verdict_markup(verdict: Verdict, color: bool = True) -> str:
    if not color:
        return verdict.value
    style = VERDICT_STYLES.get(verdict, "white")
    return f"[{style}]{verdict.value}[/{style}]"


def _detail_text(result: ClassificationResult) -> str:
    if result.verdict is Verdict.VULNERABLE:
        return "orphaned: " + ", ".join(result.orphaned)
    if result.verdict is Verdict.INDETERMINATE:
        return f"{result.reason or 'unknown'} after {result.attempts} attempt(s)"
    if result.provider:
        return f"{result.provider} zone answers"
    if not result.nameservers:
        return "no delegation"
    return "not delegated to a cloud provider"


def format_result_line(result: ClassificationResult, color: bool = True) -> str:
    """One streamed line per domain, e.g. `victim.example : Vulnerable (orphaned: ...)`."""
    return f"{escape(result.domain)} : {_verdict_markup(result.verdict, color)} ({escape(_detail_text(result))})"


def print_result(result: ClassificationResult, color: bool = True, target: Optional[Console] = None) -> None:
    out = target or console
    out.print(format_result_line(result, color), markup=True, highlight=False, soft_wrap=True)


def count_verdicts(results: Iterable[ClassificationResult]) -> Dict[str, int]:
    counts = {verdict.value: 0 for verdict in Verdict}
    for result in results:
        counts[result.verdict.value] += 1
    return counts


def output(
    results: Sequence[ClassificationResult],
    elapsed: Optional[timedelta] = None,
    color: bool = True,
    interrupted: bool = False,
) -> None:
    """Render the summary shown after a scan: non-safe findings first, then totals."""
    if not results:
        err_console.print("[yellow]No results to display.[/yellow]")
        return

    findings = [r for r in results if r.verdict is not Verdict.SAFE]
    if findings:
        table = _new_table(box_style=box.SIMPLE_HEAVY, show_header=True, header_style="bold cyan")
        table.add_column("Domain", style="cyan", width=SUMMARY_DOMAIN_WIDTH, no_wrap=True, overflow="ellipsis")
        table.add_column("Verdict", width=SUMMARY_VERDICT_WIDTH, no_wrap=True)
        table.add_column("Tries", justify="center", width=SUMMARY_ATTEMPTS_WIDTH, no_wrap=True)
        table.add_column("Nameservers", overflow="fold")
        order = {Verdict.VULNERABLE: 0, Verdict.INDETERMINATE: 1}
        for item in sorted(findings, key=lambda r: (order.get(r.verdict, 2), r.domain)):
            table.add_row(
                item.domain,
                _verdict_markup(item.verdict, color),
                str(item.attempts),
                ", ".join(item.orphaned or item.nameservers) or "-",
            )
        console.print(table)

    counts = count_verdicts(results)
    summary = (
        f"[bold]Domains:[/bold] {len(results)}  "
        f"[bold]Vulnerable:[/bold] {counts[Verdict.VULNERABLE.value]}  "
        f"[bold]Safe:[/bold] {counts[Verdict.SAFE.value]}  "
        f"[bold]Indeterminate:[/bold] {counts[Verdict.INDETERMINATE.value]}  "
        f"[bold]Elapsed:[/bold] {fmt_td(elapsed)}"
    )
    console.print(Panel.fit(summary, border_style="red" if counts[Verdict.VULNERABLE.value] else "cyan"))
    if counts[Verdict.INDETERMINATE.value]:
        console.print(
            "[yellow]Note:[/yellow] indeterminate domains had no conclusive DNS answer; "
            "re-run later, delegation changes can take time to propagate."
        )
    if interrupted:
        console.print("[yellow]Note:[/yellow] scan interrupted, results above are partial.")


def print_scan_status(
    timeout: float,
    threads: int,
    retries: int,
    backoff: float,
    dns: str,
    probe_rdtype: str,
    providers: List[str],
    target_count: Optional[int] = None,
) -> None:
    table = _new_table(title="Scan Status", box_style=box.MINIMAL_DOUBLE_HEAD)
    _add_kv_columns(table)

    table.add_row("Targets", "-" if target_count is None else str(target_count))
    table.add_row("Timeout", f"{timeout}s per query")
    table.add_row("Workers", str(threads))
    table.add_row("Retries", str(retries))
    table.add_row("Backoff", f"{backoff}s (doubling)")
    table.add_row("DNS", dns)
    table.add_row("Probe", probe_rdtype)
    table.add_row("Providers", ", ".join(providers) or "-")

    console.print(table)


def print_json_output(results: Iterable[ClassificationResult]) -> None:
    try:
        sys.stdout.write(json.dumps([r.to_dict() for r in results], ensure_ascii=False, indent=2))
        sys.stdout.write("\n")
    except BrokenPipeError:
        # Piped output (e.g. `| head`) closed early.
        return
