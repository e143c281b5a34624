from __future__ import annotations

"""Scan engine for nstakeover.

This module contains the runtime used by both CLI and Python API:
- scan configuration and per-scan context (`ScanConfig`, `ScanContext`)
- the bounded worker pool with per-domain retry state machines (`scan`)
- orchestration helpers (`_run_coro_sync`, `NSTAKEOVER`)

Keep logic in this file side-effect free where possible, because it is imported
from both `nstakeover/cli.py` and external user scripts.
"""

import asyncio
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import timedelta
from functools import partial
from typing import Any, AsyncIterator, Callable, Dict, Iterable, List, Optional, Union

from ..errors import DnsError, InvalidInputError
from .classifier import classify
from .models import ClassificationResult, DomainSet, ScanTask, TaskState, Verdict
from .normalize import normalize
from .providers import ProviderPattern, load_provider_patterns
from .resolver import DEFAULT_DNS_SERVER, PROBE_RDTYPES, ResolverClient

logger = logging.getLogger("nstakeover")
logger.setLevel(logging.INFO)
if not logger.handlers:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", "%H:%M:%S"))
    logger.addHandler(handler)

DEFAULT_CONCURRENCY = 10
DEFAULT_TIMEOUT = 3.0
DEFAULT_MAX_RETRIES = 3
DEFAULT_BACKOFF_BASE = 1.0

# Reason attached to results whose scan crashed outside DNS error handling.
UNEXPECTED_ERROR = "ERROR"

_WORKER_DONE = object()


def fmt_td(td: Optional[timedelta]) -> str:
    if td is None:
        return "-"
    total_seconds = int(td.total_seconds())
    hours, rem = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rem, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


@dataclass
class ScanConfig:
    concurrency: int = DEFAULT_CONCURRENCY
    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    backoff_base: float = DEFAULT_BACKOFF_BASE
    dns_server: str = DEFAULT_DNS_SERVER
    probe_rdtype: str = "SOA"
    providers: Optional[List[ProviderPattern]] = None

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be >= 1 (got {self.concurrency})")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be > 0 (got {self.timeout})")
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0 (got {self.max_retries})")
        if self.backoff_base < 0:
            raise ValueError(f"backoff_base must be >= 0 (got {self.backoff_base})")
        self.probe_rdtype = str(self.probe_rdtype or "").upper()
        if self.probe_rdtype not in PROBE_RDTYPES:
            raise ValueError(f"Unsupported probe record type: {self.probe_rdtype} (use SOA or NS)")
        if self.providers is None:
            self.providers = load_provider_patterns()


@dataclass
class ScanContext:
    """State of one scan run, handed to every worker instead of module globals."""

    config: ScanConfig
    resolver: Any
    cancel_event: asyncio.Event
    total: int = 0
    done: int = 0
    counts: Dict[str, int] = field(default_factory=lambda: {v.value: 0 for v in Verdict})
    progress_callback: Optional[Callable[[int, int], None]] = None
    executor: Optional[ThreadPoolExecutor] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def record(self, result: ClassificationResult) -> None:
        self.done += 1
        self.counts[result.verdict.value] += 1
        if self.progress_callback:
            self.progress_callback(self.done, self.total)


async def _blocking(ctx: ScanContext, fn: Callable[..., Any], *args: Any) -> Any:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(ctx.executor, partial(fn, *args))


async def _wait_backoff(ctx: ScanContext, delay: float) -> bool:
    """Sleep between retries; returns False when the scan got cancelled meanwhile."""
    if ctx.cancelled:
        return False
    if delay <= 0:
        return True
    try:
        await asyncio.wait_for(ctx.cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return True
    return False


async def _attempt(ctx: ScanContext, task: ScanTask) -> ClassificationResult:
    config = ctx.config
    try:
        nameservers = await _blocking(ctx, ctx.resolver.lookup_ns, task.domain, config.timeout)
    except DnsError as exc:
        logger.debug("NS lookup %s (attempt %d) failed: %s", task.domain, task.attempts, exc.kind.value)
        return ClassificationResult(domain=task.domain, verdict=Verdict.INDETERMINATE, reason=exc.kind.value)

    def probe(domain: str, nameserver: str) -> Any:
        return ctx.resolver.probe_authority(domain, nameserver, config.timeout)

    return await _blocking(ctx, classify, task.domain, nameservers, probe, config.providers)


async def _run_task(ctx: ScanContext, task: ScanTask) -> ClassificationResult:
    while True:
        task.start_attempt()
        result = await _attempt(ctx, task)
        if result.verdict is not Verdict.INDETERMINATE:
            task.state = TaskState.SUCCESS
            return replace(result, attempts=task.attempts)

        task.last_error = result.reason
        if not task.can_retry(ctx.config.max_retries):
            task.state = TaskState.EXHAUSTED
            return replace(result, attempts=task.attempts)

        task.state = TaskState.RETRY_SCHEDULED
        delay = task.backoff(ctx.config.backoff_base)
        logger.debug("Retrying %s in %.1fs after %s", task.domain, delay, result.reason)
        if not await _wait_backoff(ctx, delay):
            logger.debug("Scan cancelled, abandoning retries for %s", task.domain)
            task.state = TaskState.EXHAUSTED
            return replace(result, attempts=task.attempts)


async def _worker(ctx: ScanContext, pending: "asyncio.Queue[str]", out: "asyncio.Queue[Any]") -> None:
    try:
        while not ctx.cancelled:
            try:
                domain = pending.get_nowait()
            except asyncio.QueueEmpty:
                return
            task = ScanTask(domain)
            try:
                result = await _run_task(ctx, task)
            except Exception as exc:
                logger.warning("Unexpected error while scanning %s: %s: %s", domain, exc.__class__.__name__, exc)
                result = ClassificationResult(
                    domain=domain,
                    verdict=Verdict.INDETERMINATE,
                    attempts=max(task.attempts, 1),
                    reason=UNEXPECTED_ERROR,
                )
            ctx.record(result)
            out.put_nowait(result)
    finally:
        out.put_nowait(_WORKER_DONE)


async def scan(
    domains: Union[DomainSet, Iterable[str]],
    config: Optional[ScanConfig] = None,
    resolver: Any = None,
    cancel_event: Optional[asyncio.Event] = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> AsyncIterator[ClassificationResult]:
    """Classify every domain and yield results in completion order.

    Used by the CLI and by `NSTAKEOVER`. Domains are assumed normalized; each
    dispatched domain yields exactly one result. Setting `cancel_event` stops
    dispatch and cuts pending backoff waits short; results already produced are
    still yielded.
    """
    config = config or ScanConfig()
    domain_list = list(domains)
    if not domain_list:
        return

    ctx = ScanContext(
        config=config,
        resolver=resolver or ResolverClient(config.dns_server, probe_rdtype=config.probe_rdtype),
        cancel_event=cancel_event or asyncio.Event(),
        total=len(domain_list),
        progress_callback=progress_callback,
    )

    pending: "asyncio.Queue[str]" = asyncio.Queue()
    for domain in domain_list:
        pending.put_nowait(domain)
    out: "asyncio.Queue[Any]" = asyncio.Queue()

    worker_count = max(1, min(config.concurrency, len(domain_list)))
    executor = ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="nstakeover")
    ctx.executor = executor
    workers = [asyncio.create_task(_worker(ctx, pending, out)) for _ in range(worker_count)]
    remaining = worker_count
    try:
        while remaining:
            item = await out.get()
            if item is _WORKER_DONE:
                remaining -= 1
                continue
            yield item
    finally:
        for worker in workers:
            if not worker.done():
                worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        # In-flight queries end on their own timeout; do not block the loop on them.
        executor.shutdown(wait=False)


async def _run_async(
    domains: Iterable[str],
    config: ScanConfig,
    resolver: Any = None,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> List[ClassificationResult]:
    results: List[ClassificationResult] = []
    async for result in scan(domains, config, resolver=resolver, progress_callback=progress_callback):
        results.append(result)
    return results


def _run_coro_sync(coro: Any) -> Any:
    """Run async code from sync callers (CLI and public API).

    If already inside an event loop, execute in a helper thread to avoid
    `RuntimeError: asyncio.run() cannot be called from a running event loop`.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    outcome: Dict[str, Any] = {}

    def target() -> None:
        try:
            outcome["result"] = asyncio.run(coro)
        except Exception as exc:  # pragma: no cover - fallback path
            outcome["error"] = exc

    thread = threading.Thread(target=target, daemon=True)
    thread.start()
    thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


def NSTAKEOVER(
    domain: Union[str, Iterable[str]],
    dns: Optional[str] = None,
    timeout: Optional[float] = None,
    threads: Optional[int] = None,
    retries: Optional[int] = None,
    backoff: Optional[float] = None,
    probe_rdtype: str = "SOA",
    providers: Optional[str] = None,
    resolver: Any = None,
) -> List[dict]:
    """Public synchronous Python API entrypoint.

    Example:
    `NSTAKEOVER(["victim.example", "safe.example"], timeout=2.0)`

    Input is normalized first; raises InvalidInputError when no valid domain
    is left to scan. Invalid settings raise ValueError.
    """
    lines = [domain] if isinstance(domain, str) else list(domain)
    domain_set = normalize(lines)
    if not domain_set:
        raise InvalidInputError(f"No valid domains in input ({domain_set.skipped} skipped)")
    config = ScanConfig(
        concurrency=DEFAULT_CONCURRENCY if threads is None else threads,
        timeout=DEFAULT_TIMEOUT if timeout is None else timeout,
        max_retries=DEFAULT_MAX_RETRIES if retries is None else retries,
        backoff_base=DEFAULT_BACKOFF_BASE if backoff is None else backoff,
        dns_server=dns or DEFAULT_DNS_SERVER,
        probe_rdtype=probe_rdtype,
        providers=load_provider_patterns(providers),
    )
    results = _run_coro_sync(_run_async(domain_set, config, resolver=resolver))
    return [result.to_dict() for result in results]
