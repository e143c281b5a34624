from __future__ import annotations

"""Compatibility facade for the nstakeover engine.

Public imports remain stable while implementation is split across
`nstakeover.engine.*` modules.
"""

from .engine.classifier import classify
from .engine.models import ClassificationResult, DomainSet, ProbeOutcome, ScanTask, TaskState, Verdict
from .engine.normalize import normalize, normalize_domain, read_json_lines, read_lines
from .engine.providers import ProviderPattern, load_provider_patterns, match_provider
from .engine.resolver import DEFAULT_DNS_SERVER, ResolverClient
from .engine.runtime import NSTAKEOVER, ScanConfig, ScanContext, _run_async, _run_coro_sync, fmt_td, logger, scan

__all__ = [
    "DEFAULT_DNS_SERVER",
    "ClassificationResult",
    "DomainSet",
    "NSTAKEOVER",
    "ProbeOutcome",
    "ProviderPattern",
    "ResolverClient",
    "ScanConfig",
    "ScanContext",
    "ScanTask",
    "TaskState",
    "Verdict",
    "classify",
    "fmt_td",
    "load_provider_patterns",
    "logger",
    "match_provider",
    "normalize",
    "normalize_domain",
    "read_json_lines",
    "read_lines",
    "scan",
    "_run_async",
    "_run_coro_sync",
]
