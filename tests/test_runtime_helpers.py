from __future__ import annotations

import asyncio

import pytest
from fakes import FakeResolver

import nstakeover.engine.runtime as runtime
from nstakeover.core import ScanTask, TaskState
from nstakeover.errors import InvalidInputError


def test_scan_config_validation():
    with pytest.raises(ValueError):
        runtime.ScanConfig(concurrency=0)
    with pytest.raises(ValueError):
        runtime.ScanConfig(timeout=0)
    with pytest.raises(ValueError):
        runtime.ScanConfig(max_retries=-1)
    config = runtime.ScanConfig()
    assert config.concurrency == runtime.DEFAULT_CONCURRENCY
    assert [p.name for p in config.providers] == ["route53"]


def test_scan_task_backoff_doubles():
    task = ScanTask("a.example")
    assert task.state is TaskState.PENDING
    task.start_attempt()
    assert task.state is TaskState.QUERYING
    assert task.backoff(1.5) == 1.5
    task.start_attempt()
    assert task.backoff(1.5) == 3.0
    assert task.backoff(0) == 0.0
    assert task.can_retry(2) is True
    task.start_attempt()
    assert task.can_retry(2) is False


def test_public_api_normalizes_and_returns_rows():
    resolver = FakeResolver({"victim.example": ["ns-1.awsdns-01.com"]})
    rows = runtime.NSTAKEOVER(["Victim.Example.", "victim.example", "bad domain", "other.example"], resolver=resolver, backoff=0)
    by_domain = {row["domain"]: row for row in rows}
    assert set(by_domain) == {"victim.example", "other.example"}
    assert by_domain["victim.example"]["verdict"] == "Vulnerable"
    assert by_domain["other.example"]["verdict"] == "Safe"


def test_public_api_rejects_empty_input():
    with pytest.raises(InvalidInputError):
        runtime.NSTAKEOVER([" ", "# none"])


def test_run_coro_sync_inside_running_loop():
    async def inner():
        return 42

    async def outer():
        return runtime._run_coro_sync(inner())

    assert asyncio.run(outer()) == 42


def test_scan_config_checks_probe_record_type():
    assert runtime.ScanConfig(probe_rdtype="ns").probe_rdtype == "NS"
    with pytest.raises(ValueError):
        runtime.ScanConfig(probe_rdtype="A")


def test_public_api_rejects_input_without_valid_domains():
    with pytest.raises(InvalidInputError):
        runtime.NSTAKEOVER(["not a domain", "also bad"], resolver=FakeResolver({}))


def test_public_api_passes_explicit_zero_to_validation():
    resolver = FakeResolver({})
    with pytest.raises(ValueError):
        runtime.NSTAKEOVER("a.example", timeout=0, resolver=resolver)
    with pytest.raises(ValueError):
        runtime.NSTAKEOVER("a.example", threads=0, resolver=resolver)
