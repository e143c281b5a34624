from __future__ import annotations

"""Command-line interface for nstakeover.

This module translates CLI flags into runtime settings, reads the target list,
drives the streaming scan through `nstakeover.core` and hands each result to
the terminal reporter as soon as it arrives.
"""

import argparse
import asyncio
import logging
import signal
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional, TextIO, Tuple

from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from .cli_parts.settings import load_env_runtime_settings, merge_runtime_settings
from .cli_parts.status import render_runtime_status_panel
from .core import (
    ClassificationResult,
    DomainSet,
    ScanConfig,
    load_provider_patterns,
    logger,
    normalize,
    read_json_lines,
    read_lines,
    scan,
)
from .errors import InputError
from .output import console, err_console, output, print_json_output, print_result, print_scan_status
from .version import __version__

EXIT_OK = 0
EXIT_INPUT_ERROR = 1
EXIT_INTERRUPTED = 130


def _collect_raw_lines(args: argparse.Namespace, stdin: TextIO) -> Tuple[List[str], str]:
    """Return raw input lines and a label for where they came from."""
    if args.domain and args.file:
        raise InputError("The -d/--domain and -f/--file options are mutually exclusive")
    if args.domain:
        return list(args.domain), "domain"
    if args.file:
        if args.json_input:
            with open(args.file, "r", encoding="utf-8") as fh:
                return read_json_lines(fh.read()), args.file
        return read_lines(args.file), args.file
    if stdin.isatty():
        raise InputError("No input: use -d DOMAIN, -f FILE or pipe domains on stdin")
    text = stdin.read()
    if args.json_input:
        return read_json_lines(text), "stdin (json)"
    return text.splitlines(), "stdin"


def _build_config(runtime: Dict[str, Any]) -> ScanConfig:
    return ScanConfig(
        concurrency=int(runtime["threads"]),
        timeout=float(runtime["timeout"]),
        max_retries=int(runtime["retries"]),
        backoff_base=float(runtime["backoff"]),
        dns_server=str(runtime["dns"]),
        probe_rdtype=str(runtime["probe"]),
        providers=load_provider_patterns(runtime.get("providers")),
    )


def _provider_names(config: ScanConfig) -> List[str]:
    names: List[str] = []
    for pattern in config.providers or []:
        if pattern.name not in names:
            names.append(pattern.name)
    return names


async def _stream_scan(
    domains: DomainSet,
    config: ScanConfig,
    color: bool,
    show_lines: bool,
    show_progress: bool,
) -> Tuple[List[ClassificationResult], bool]:
    """Consume the result stream, printing each result as it completes.

    SIGINT sets the cancel event once: dispatch stops, running domains finish and
    their results are still printed. A second SIGINT falls back to the default
    KeyboardInterrupt.
    """
    loop = asyncio.get_running_loop()
    cancel_event = asyncio.Event()

    def _on_interrupt() -> None:
        cancel_event.set()
        err_console.print("\n[yellow]Interrupted: finishing running domains...[/yellow]")
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
    except (NotImplementedError, RuntimeError):
        # Platforms without loop signal handlers keep KeyboardInterrupt semantics.
        pass

    results: List[ClassificationResult] = []
    try:
        if show_progress:
            with Progress(
                SpinnerColumn(),
                TextColumn("[bold cyan]{task.description}"),
                BarColumn(),
                TextColumn("{task.completed}/{task.total}"),
                TimeElapsedColumn(),
                console=console,
                transient=True,
            ) as progress:
                task_id = progress.add_task("Checking delegations", total=max(len(domains), 1))

                def cb(done: int, total: int) -> None:
                    progress.update(task_id, total=max(total, 1), completed=done)

                async for result in scan(domains, config, cancel_event=cancel_event, progress_callback=cb):
                    results.append(result)
                    if show_lines:
                        print_result(result, color=color, target=progress.console)
        else:
            async for result in scan(domains, config, cancel_event=cancel_event):
                results.append(result)
                if show_lines:
                    print_result(result, color=color)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass
    return results, cancel_event.is_set()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nstakeover",
        description=(
            f"nstakeover v.{__version__} - Detect dangling NS delegations to cloud DNS hosted zones\n"
            "CLI options > environment (NSTAKEOVER_*, .env) > built-in defaults."
        ),
    )
    target_group = parser.add_argument_group("Target")
    target_group.add_argument("-d", "--domain", action="append", help="Domain to check. Repeatable.")
    target_group.add_argument("-f", "--file", "-i", "--input-file", dest="file", help="File with domains, one per line.")
    target_group.add_argument("--json-input", help="Parse the file or stdin as a JSON list of domains.", action="store_true")

    runtime_group = parser.add_argument_group("Runtime Overrides")
    runtime_group.add_argument("--dns", "--name-server", dest="dns", help="Recursive DNS server used to find delegations.")
    runtime_group.add_argument("--timeout", dest="timeout", type=float, help="Timeout in seconds per DNS query.")
    runtime_group.add_argument("--threads", "--concurrency", dest="threads", type=int, help="Concurrent workers.")
    runtime_group.add_argument("--retries", dest="retries", type=int, help="Retries per domain after a DNS error.")
    runtime_group.add_argument("--backoff", dest="backoff", type=float, help="Base backoff in seconds (doubles per retry).")
    runtime_group.add_argument(
        "--probe",
        dest="probe",
        type=str.upper,
        choices=["SOA", "NS"],
        help="Record type for the direct authority probe.",
    )
    runtime_group.add_argument("--providers", dest="providers", help="JSON file with provider nameserver patterns.")

    output_group = parser.add_argument_group("Output")
    output_group.add_argument("--silent", help="Silent mode (hide status panel and progress).", action="store_true")
    output_group.add_argument("--json", "--json-output", dest="json", help="JSON-only output (forces --silent).", action="store_true")
    output_group.add_argument("--no-color", help="Plain verdict labels.", action="store_true")
    output_group.add_argument("--status", help="Print effective runtime settings before scanning.", action="store_true")
    output_group.add_argument("-v", "--verbose", help="Debug logging on stderr.", action="store_true")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entrypoint.

    Returns the process exit status: 0 on a completed scan, 1 on unusable input
    or settings, 130 when interrupted.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.json:
        args.silent = True
    if args.verbose:
        logger.setLevel(logging.DEBUG)

    try:
        raw_lines, source = _collect_raw_lines(args, sys.stdin)
        domains = normalize(raw_lines)
    except InputError as exc:
        err_console.print(f"[red]{exc}[/red]")
        return EXIT_INPUT_ERROR
    except OSError as exc:
        err_console.print(f"[red]Cannot read input:[/red] {exc}")
        return EXIT_INPUT_ERROR

    if not domains:
        err_console.print(f"[red]No valid domains found in input[/red] ({domains.skipped} skipped).")
        return EXIT_INPUT_ERROR
    if domains.skipped and not args.json:
        err_console.print(f"[yellow]Skipped malformed lines:[/yellow] {domains.skipped}")

    runtime = merge_runtime_settings(args, load_env_runtime_settings())
    try:
        config = _build_config(runtime)
    except ValueError as exc:
        err_console.print(f"[red]Invalid settings:[/red] {exc}")
        return EXIT_INPUT_ERROR

    providers = _provider_names(config)
    if args.status and not args.json:
        print_scan_status(
            config.timeout,
            config.concurrency,
            config.max_retries,
            config.backoff_base,
            config.dns_server,
            config.probe_rdtype,
            providers,
            len(domains),
        )
    if not args.silent:
        render_runtime_status_panel(
            source=source,
            target_count=len(domains),
            skipped=domains.skipped,
            timeout=config.timeout,
            threads=config.concurrency,
            retries=config.max_retries,
            backoff=config.backoff_base,
            dns=config.dns_server,
            probe_rdtype=config.probe_rdtype,
            providers=providers,
        )

    color = not args.no_color
    start_time = datetime.now()
    results, interrupted = asyncio.run(
        _stream_scan(
            domains,
            config,
            color=color,
            show_lines=not args.json,
            show_progress=not args.silent,
        )
    )
    elapsed = datetime.now() - start_time

    if args.json:
        print_json_output(results)
    else:
        output(results, elapsed, color=color, interrupted=interrupted)
    return EXIT_INTERRUPTED if interrupted else EXIT_OK


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(EXIT_INTERRUPTED)
