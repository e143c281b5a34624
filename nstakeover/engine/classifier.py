from __future__ import annotations

"""Delegation classification.

Pure logic: the caller supplies the NS set and a `probe` callable, so the
verdict rules are testable without any network access.
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence

from ..errors import DnsError
from .models import ClassificationResult, ProbeOutcome, Verdict
from .providers import ProviderPattern, default_provider_patterns, partition_nameservers

logger = logging.getLogger("nstakeover")

Probe = Callable[[str, str], ProbeOutcome]


def classify(
    domain: str,
    nameservers: Sequence[str],
    probe: Probe,
    providers: Optional[Iterable[ProviderPattern]] = None,
) -> ClassificationResult:
    """Decide whether `domain`'s delegation to cloud nameservers is orphaned.

    - no cloud nameserver in the set: SAFE, `probe` is never called
    - any cloud nameserver answers authoritatively: SAFE (first one wins)
    - otherwise, at least one NotAuthoritative answer: VULNERABLE
    - every probe failed with a DNS error: INDETERMINATE, never SAFE
    """
    patterns = list(providers) if providers is not None else default_provider_patterns()
    ns_tuple = tuple(nameservers)
    cloud, _ = partition_nameservers(ns_tuple, patterns)
    if not cloud:
        return ClassificationResult(domain=domain, verdict=Verdict.SAFE, nameservers=ns_tuple)

    provider = cloud[0][1]
    orphaned: List[str] = []
    last_error: Optional[DnsError] = None
    for host, _provider in cloud:
        try:
            outcome = probe(domain, host)
        except DnsError as exc:
            logger.debug("Probe %s @ %s failed: %s", domain, host, exc.kind.value)
            last_error = exc
            continue
        logger.debug("Probe %s @ %s: %s", domain, host, outcome.value)
        if outcome is ProbeOutcome.AUTHORITATIVE:
            return ClassificationResult(
                domain=domain,
                verdict=Verdict.SAFE,
                nameservers=ns_tuple,
                provider=provider,
            )
        orphaned.append(host)

    if orphaned:
        return ClassificationResult(
            domain=domain,
            verdict=Verdict.VULNERABLE,
            nameservers=ns_tuple,
            orphaned=tuple(orphaned),
            provider=provider,
        )
    return ClassificationResult(
        domain=domain,
        verdict=Verdict.INDETERMINATE,
        nameservers=ns_tuple,
        reason=last_error.kind.value if last_error else None,
        provider=provider,
    )
