from __future__ import annotations

import pytest

from nstakeover.core import ProbeOutcome, Verdict, classify
from nstakeover.errors import DnsError, DnsErrorKind

CLOUD_NS = ["ns-123.awsdns-45.com", "ns-456.awsdns-67.org"]


def _probe_from(answers, calls=None):
    def probe(domain, nameserver):
        if calls is not None:
            calls.append(nameserver)
        answer = answers[nameserver]
        if isinstance(answer, Exception):
            raise answer
        return answer

    return probe


def test_non_provider_delegation_is_safe_without_probing():
    calls = []
    result = classify("safe.example", ["ns1.otherprovider.net"], _probe_from({}, calls))
    assert result.verdict is Verdict.SAFE
    assert result.nameservers == ("ns1.otherprovider.net",)
    assert result.provider is None
    assert calls == []


def test_empty_delegation_is_safe():
    result = classify("www.example.com", [], _probe_from({}))
    assert result.verdict is Verdict.SAFE


def test_all_not_authoritative_is_vulnerable_with_orphans():
    answers = {ns: ProbeOutcome.NOT_AUTHORITATIVE for ns in CLOUD_NS}
    result = classify("victim.example", CLOUD_NS, _probe_from(answers))
    assert result.verdict is Verdict.VULNERABLE
    assert result.orphaned == tuple(CLOUD_NS)
    assert result.provider == "route53"
    assert result.is_vulnerable


def test_one_authoritative_is_safe_even_if_others_error():
    answers = {
        CLOUD_NS[0]: DnsError(DnsErrorKind.TIMEOUT),
        CLOUD_NS[1]: ProbeOutcome.AUTHORITATIVE,
    }
    result = classify("live.example", CLOUD_NS, _probe_from(answers))
    assert result.verdict is Verdict.SAFE
    assert result.provider == "route53"


def test_first_authoritative_answer_stops_probing():
    calls = []
    answers = {ns: ProbeOutcome.AUTHORITATIVE for ns in CLOUD_NS}
    classify("live.example", CLOUD_NS, _probe_from(answers, calls))
    assert calls == [CLOUD_NS[0]]


def test_all_probe_errors_is_indeterminate_with_last_error():
    answers = {
        CLOUD_NS[0]: DnsError(DnsErrorKind.TIMEOUT),
        CLOUD_NS[1]: DnsError(DnsErrorKind.SERVFAIL),
    }
    result = classify("flaky.example", CLOUD_NS, _probe_from(answers))
    assert result.verdict is Verdict.INDETERMINATE
    assert result.reason == "SERVFAIL"


def test_mixed_errors_and_not_authoritative_is_vulnerable():
    answers = {
        CLOUD_NS[0]: DnsError(DnsErrorKind.TIMEOUT),
        CLOUD_NS[1]: ProbeOutcome.NOT_AUTHORITATIVE,
    }
    result = classify("victim.example", CLOUD_NS, _probe_from(answers))
    assert result.verdict is Verdict.VULNERABLE
    assert result.orphaned == (CLOUD_NS[1],)


def test_only_cloud_nameservers_are_probed():
    calls = []
    nameservers = ["ns1.otherprovider.net"] + CLOUD_NS
    answers = {ns: ProbeOutcome.NOT_AUTHORITATIVE for ns in CLOUD_NS}
    result = classify("split.example", nameservers, _probe_from(answers, calls))
    assert calls == CLOUD_NS
    assert result.nameservers == tuple(nameservers)


@pytest.mark.parametrize(
    "answer",
    [ProbeOutcome.AUTHORITATIVE, ProbeOutcome.NOT_AUTHORITATIVE, DnsError(DnsErrorKind.REFUSED)],
)
def test_classification_is_idempotent(answer):
    answers = {ns: answer for ns in CLOUD_NS}
    first = classify("victim.example", CLOUD_NS, _probe_from(answers))
    second = classify("victim.example", CLOUD_NS, _probe_from(answers))
    assert first == second
