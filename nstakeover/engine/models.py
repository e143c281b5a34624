from __future__ import annotations

"""Typed records exchanged between normalizer, classifier, scheduler and reporter."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class Verdict(str, Enum):
    VULNERABLE = "Vulnerable"
    SAFE = "Safe"
    INDETERMINATE = "Indeterminate"


class ProbeOutcome(str, Enum):
    AUTHORITATIVE = "Authoritative"
    NOT_AUTHORITATIVE = "NotAuthoritative"


class TaskState(str, Enum):
    PENDING = "pending"
    QUERYING = "querying"
    RETRY_SCHEDULED = "retry-scheduled"
    SUCCESS = "success"
    EXHAUSTED = "exhausted"


@dataclass
class DomainSet:
    """Unique normalized domains in first-seen order."""

    domains: List[str] = field(default_factory=list)
    skipped: int = 0

    def __len__(self) -> int:
        return len(self.domains)

    def __iter__(self) -> Iterator[str]:
        return iter(self.domains)

    def __contains__(self, domain: object) -> bool:
        return domain in self.domains


@dataclass(frozen=True)
class ClassificationResult:
    domain: str
    verdict: Verdict
    nameservers: Tuple[str, ...] = ()
    attempts: int = 1
    reason: Optional[str] = None
    orphaned: Tuple[str, ...] = ()
    provider: Optional[str] = None

    @property
    def is_vulnerable(self) -> bool:
        return self.verdict is Verdict.VULNERABLE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "verdict": self.verdict.value,
            "nameservers": list(self.nameservers),
            "attempts": self.attempts,
            "reason": self.reason,
            "orphaned": list(self.orphaned),
            "provider": self.provider,
        }


@dataclass
class ScanTask:
    """Retry state for one domain, owned by the worker processing it.

    Transitions: PENDING -> QUERYING -> SUCCESS
                                    -> RETRY_SCHEDULED -> QUERYING ...
                                    -> EXHAUSTED
    """

    domain: str
    attempts: int = 0
    state: TaskState = TaskState.PENDING
    last_error: Optional[str] = None

    def start_attempt(self) -> None:
        self.state = TaskState.QUERYING
        self.attempts += 1

    def can_retry(self, max_retries: int) -> bool:
        return self.attempts <= max_retries

    def backoff(self, base: float) -> float:
        if base <= 0:
            return 0.0
        return base * (2 ** max(self.attempts - 1, 0))
