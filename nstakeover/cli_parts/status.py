from __future__ import annotations

from typing import List

from rich import box
from rich.panel import Panel
from rich.table import Table

from ..output import console
from ..version import __version__


def render_runtime_status_panel(
    source: str,
    target_count: int,
    skipped: int,
    timeout: float,
    threads: int,
    retries: int,
    backoff: float,
    dns: str,
    probe_rdtype: str,
    providers: List[str],
) -> None:
    """Render the startup header with runtime settings and target counts."""
    runtime_width = 80
    key_col_width = 11
    value_col_width = runtime_width - key_col_width - 6

    def _fit_value(value: object) -> str:
        text = str(value)
        # Keep cells on one line so the panel stays aligned.
        max_len = max(20, value_col_width)
        if len(text) <= max_len:
            return text
        return f"{text[: max_len - 3]}..."

    status = Table(box=box.MINIMAL, show_header=False, pad_edge=False, expand=False)
    status.add_column("Key", width=key_col_width, no_wrap=True)
    status.add_column("Value", width=value_col_width, no_wrap=True, overflow="crop")
    status.add_row("Source", _fit_value(source))
    status.add_row("Targets", _fit_value(f"{target_count} ({skipped} skipped)" if skipped else target_count))
    status.add_row("Timeout", _fit_value(f"{timeout}s"))
    status.add_row("Workers", _fit_value(threads))
    status.add_row("Retries", _fit_value(f"{retries} (backoff {backoff}s, doubling)"))
    status.add_row("DNS", _fit_value(dns))
    status.add_row("Probe", _fit_value(probe_rdtype))
    status.add_row("Providers", _fit_value(", ".join(providers) or "-"))

    console.print(
        Panel(status, title=f"nstakeover v{__version__}", border_style="blue", width=runtime_width + 4, expand=False)
    )
