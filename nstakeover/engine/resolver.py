from __future__ import annotations

"""DNS access for the engine.

Two operations matter for takeover detection:
- `lookup_ns`: the delegation as the *parent* zone publishes it. A recursive NS
  lookup is not enough, because for a dangling domain the recursive server
  gets REFUSED from the provider and answers SERVFAIL.
- `probe_authority`: a direct, non-recursive query to one nameserver, to see
  whether it still serves the zone.

Both are blocking and enforce the caller's per-query timeout. Retries belong to
the scheduler; the only fallback here is trying another address or another
parent nameserver within the same attempt.
"""

import ipaddress
import logging
import threading
import time
from typing import Dict, List, Optional, Tuple

import dns.exception
import dns.flags
import dns.message
import dns.name
import dns.query
import dns.rcode
import dns.rdatatype
import dns.resolver

from ..errors import DnsError, DnsErrorKind
from .models import ProbeOutcome

logger = logging.getLogger("nstakeover")

DEFAULT_DNS_SERVER = "8.8.8.8"
PROBE_RDTYPES = ("SOA", "NS")
MAX_PARENT_SERVERS = 3


def _clean_host(value: object) -> str:
    return str(value).strip().rstrip(".").lower()


def dns_error_from(exc: BaseException) -> DnsError:
    """Map a dnspython/socket failure onto the four error kinds."""
    if isinstance(exc, DnsError):
        return exc
    if isinstance(exc, dns.resolver.NXDOMAIN):
        return DnsError(DnsErrorKind.NXDOMAIN, str(exc))
    if isinstance(exc, dns.exception.Timeout):
        return DnsError(DnsErrorKind.TIMEOUT, str(exc) or "Timeout")
    if isinstance(exc, dns.resolver.NoNameservers):
        text = str(exc)
        if "REFUSED" in text:
            return DnsError(DnsErrorKind.REFUSED, text)
        return DnsError(DnsErrorKind.SERVFAIL, text)
    return DnsError(DnsErrorKind.SERVFAIL, f"{exc.__class__.__name__}: {exc}")


def _rcode_error(rcode: int, where: str) -> DnsError:
    text = f"{where} answered {dns.rcode.to_text(rcode)}"
    if rcode == dns.rcode.NXDOMAIN:
        return DnsError(DnsErrorKind.NXDOMAIN, text)
    if rcode == dns.rcode.REFUSED:
        return DnsError(DnsErrorKind.REFUSED, text)
    return DnsError(DnsErrorKind.SERVFAIL, text)


class ResolverClient:
    """Blocking DNS client used by scheduler workers (one call per thread)."""

    ADDRESS_POSITIVE_TTL = 300.0
    ZONE_NS_TTL = 300.0

    def __init__(
        self,
        dns_server: Optional[str] = None,
        port: int = 53,
        probe_rdtype: str = "SOA",
    ):
        rdtype = str(probe_rdtype or "SOA").strip().upper()
        if rdtype not in PROBE_RDTYPES:
            raise ValueError(f"Unsupported probe record type: {probe_rdtype} (use SOA or NS)")
        self.dns_server = dns_server or DEFAULT_DNS_SERVER
        self.port = port
        self.probe_rdtype = dns.rdatatype.from_text(rdtype)
        self._cache: Dict[Tuple[str, str], Tuple[float, List[str]]] = {}
        self._cache_lock = threading.Lock()

    def _resolver(self, timeout: float) -> dns.resolver.Resolver:
        resolver = dns.resolver.Resolver(configure=False)
        resolver.nameservers = [self.dns_server]
        resolver.port = self.port
        resolver.timeout = timeout
        resolver.lifetime = timeout
        return resolver

    def _cached(self, key: Tuple[str, str]) -> Optional[List[str]]:
        with self._cache_lock:
            cached = self._cache.get(key)
        if cached is None:
            return None
        expiry, values = cached
        if expiry <= time.monotonic():
            return None
        return values

    def _store(self, key: Tuple[str, str], values: List[str], ttl: float) -> None:
        with self._cache_lock:
            self._cache[key] = (time.monotonic() + ttl, values)

    def _resolve(self, name: str, rdtype: str, timeout: float) -> List[str]:
        """Recursive lookup through the configured server. NoAnswer is empty."""
        try:
            answers = self._resolver(timeout).resolve(name, rdtype, raise_on_no_answer=False)
        except dns.exception.DNSException as exc:
            raise dns_error_from(exc) from exc
        except OSError as exc:
            raise dns_error_from(exc) from exc
        if answers.rrset is None:
            return []
        values: List[str] = []
        for rr in answers.rrset:
            text = _clean_host(rr.target) if rdtype == "NS" else str(rr).strip()
            if text and text not in values:
                values.append(text)
        return values

    def _query(self, query: dns.message.Message, where: str, timeout: float) -> dns.message.Message:
        """Send one query straight to `where`, UDP first with TCP fallback."""
        try:
            response, _ = dns.query.udp_with_fallback(query, where, timeout=timeout, port=self.port)
        except dns.exception.DNSException as exc:
            raise dns_error_from(exc) from exc
        except OSError as exc:
            raise dns_error_from(exc) from exc
        return response

    def _addresses(self, host: str, timeout: float) -> List[str]:
        try:
            ipaddress.ip_address(host)
            return [host]
        except ValueError:
            pass

        key = ("A", host)
        cached = self._cached(key)
        if cached:
            return cached
        addresses = self._resolve(host, "A", timeout)
        if not addresses:
            raise DnsError(DnsErrorKind.NXDOMAIN, f"No address for nameserver {host}")
        self._store(key, addresses, self.ADDRESS_POSITIVE_TTL)
        return addresses

    def _parent_nameservers(self, name: dns.name.Name, timeout: float) -> List[str]:
        parent = name.parent()
        try:
            zone = dns.resolver.zone_for_name(parent, resolver=self._resolver(timeout))
        except dns.exception.DNSException as exc:
            raise dns_error_from(exc) from exc
        zone_text = zone.to_text()
        key = ("NS", zone_text)
        cached = self._cached(key)
        if cached:
            return cached
        hosts = sorted(self._resolve(zone_text, "NS", timeout))
        if not hosts:
            raise DnsError(DnsErrorKind.SERVFAIL, f"No nameservers for parent zone {zone_text}")
        self._store(key, hosts, self.ZONE_NS_TTL)
        return hosts

    @staticmethod
    def _non_recursive(name: dns.name.Name, rdtype: int) -> dns.message.Message:
        query = dns.message.make_query(name, rdtype)
        query.flags &= ~dns.flags.RD
        return query

    def lookup_ns(self, domain: str, timeout: float) -> List[str]:
        """Return the NS delegation of `domain` as published by its parent zone.

        Empty when the parent answers without a delegation (the name is not a
        zone cut). Raises DnsError with the last failure kind when no parent
        nameserver gives a usable answer.
        """
        name = dns.name.from_text(domain)
        last_error: Optional[DnsError] = None
        for parent_ns in self._parent_nameservers(name, timeout)[:MAX_PARENT_SERVERS]:
            try:
                where = self._addresses(parent_ns, timeout)[0]
                response = self._query(self._non_recursive(name, dns.rdatatype.NS), where, timeout)
            except DnsError as exc:
                logger.debug("NS lookup %s via %s failed: %s", domain, parent_ns, exc.kind.value)
                last_error = exc
                continue

            rcode = response.rcode()
            if rcode == dns.rcode.NXDOMAIN:
                raise _rcode_error(rcode, parent_ns)
            if rcode != dns.rcode.NOERROR:
                last_error = _rcode_error(rcode, parent_ns)
                logger.debug("NS lookup %s via %s: %s", domain, parent_ns, last_error.message)
                continue

            for section in (response.answer, response.authority):
                for rrset in section:
                    if rrset.rdtype == dns.rdatatype.NS and rrset.name == name:
                        hosts: List[str] = []
                        for rr in rrset:
                            host = _clean_host(rr.target)
                            if host not in hosts:
                                hosts.append(host)
                        return hosts
            return []

        raise last_error or DnsError(DnsErrorKind.SERVFAIL, f"No parent nameserver answered for {domain}")

    def probe_authority(self, domain: str, nameserver_host: str, timeout: float) -> ProbeOutcome:
        """Ask `nameserver_host` directly whether it serves `domain`."""
        name = dns.name.from_text(domain)
        last_error: Optional[DnsError] = None
        for where in self._addresses(_clean_host(nameserver_host), timeout):
            try:
                response = self._query(self._non_recursive(name, self.probe_rdtype), where, timeout)
            except DnsError as exc:
                last_error = exc
                continue
            return self._authority_outcome(response, name, nameserver_host)
        raise last_error or DnsError(DnsErrorKind.SERVFAIL, f"No address for nameserver {nameserver_host}")

    def _authority_outcome(
        self,
        response: dns.message.Message,
        name: dns.name.Name,
        nameserver_host: str,
    ) -> ProbeOutcome:
        rcode = response.rcode()
        if rcode == dns.rcode.REFUSED:
            # Route 53 refuses queries for zones it does not host.
            return ProbeOutcome.NOT_AUTHORITATIVE
        if rcode not in (dns.rcode.NOERROR, dns.rcode.NXDOMAIN):
            raise _rcode_error(rcode, nameserver_host)
        if not response.flags & dns.flags.AA or rcode == dns.rcode.NXDOMAIN:
            return ProbeOutcome.NOT_AUTHORITATIVE
        for rrset in response.answer:
            if rrset.rdtype == self.probe_rdtype and rrset.name == name:
                return ProbeOutcome.AUTHORITATIVE
        return ProbeOutcome.NOT_AUTHORITATIVE
