"""Exception types shared by the engine and the CLI."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class DnsErrorKind(str, Enum):
    NXDOMAIN = "NXDOMAIN"
    SERVFAIL = "SERVFAIL"
    TIMEOUT = "TIMEOUT"
    REFUSED = "REFUSED"


class NstakeoverError(Exception):
    pass


class InputError(NstakeoverError):
    """Input could not be used at all (empty, unreadable or wrongly shaped)."""


class InvalidInputError(InputError):
    pass


class DnsError(NstakeoverError):
    """A single DNS query failed.

    Always recoverable at the domain level: the scheduler retries it or turns it
    into an indeterminate verdict, it never aborts a scan.
    """

    def __init__(self, kind: DnsErrorKind, message: Optional[str] = None):
        self.kind = DnsErrorKind(kind)
        self.message = message or self.kind.value
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"DnsError({self.kind.value}, {self.message!r})"
