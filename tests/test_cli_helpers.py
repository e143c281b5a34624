from __future__ import annotations

import argparse
import io
import json
from pathlib import Path

import pytest
from fakes import FakeResolver

import nstakeover.engine.runtime as runtime
from nstakeover.cli import _build_config, _build_parser, _collect_raw_lines, main
from nstakeover.cli_parts.settings import load_env_runtime_settings, merge_runtime_settings
from nstakeover.errors import InputError

VICTIM_NS = ["ns-123.awsdns-45.com", "ns-456.awsdns-67.org"]


class _TtyStdin(io.StringIO):
    def isatty(self) -> bool:
        return True


@pytest.fixture
def fake_resolver(monkeypatch):
    resolver = FakeResolver({"victim.example": VICTIM_NS, "safe.example": ["ns1.otherprovider.net"]})
    monkeypatch.setattr(runtime, "ResolverClient", lambda *args, **kwargs: resolver)
    return resolver


def _args(*argv: str) -> argparse.Namespace:
    return _build_parser().parse_args(list(argv))


def test_collect_raw_lines_from_domain_flags():
    lines, source = _collect_raw_lines(_args("-d", "a.com", "-d", "b.com"), io.StringIO(""))
    assert lines == ["a.com", "b.com"]
    assert source == "domain"


def test_collect_raw_lines_from_file_and_json(tmp_path: Path):
    plain = tmp_path / "domains.txt"
    plain.write_text("a.com\nb.com\n", encoding="utf-8")
    assert _collect_raw_lines(_args("-i", str(plain)), io.StringIO(""))[0] == ["a.com", "b.com"]

    as_json = tmp_path / "domains.json"
    as_json.write_text('["c.com"]', encoding="utf-8")
    assert _collect_raw_lines(_args("-f", str(as_json), "--json-input"), io.StringIO(""))[0] == ["c.com"]


def test_collect_raw_lines_from_stdin():
    lines, source = _collect_raw_lines(_args(), io.StringIO("a.com\nb.com\n"))
    assert lines == ["a.com", "b.com"]
    assert source == "stdin"
    lines, _ = _collect_raw_lines(_args("--json-input"), io.StringIO('["x.com"]'))
    assert lines == ["x.com"]


def test_collect_raw_lines_without_input_on_tty():
    with pytest.raises(InputError):
        _collect_raw_lines(_args(), _TtyStdin(""))


def test_env_settings_and_cli_precedence(monkeypatch):
    monkeypatch.setenv("NSTAKEOVER_TIMEOUT", "7.5")
    monkeypatch.setenv("NSTAKEOVER_THREADS", "not-a-number")
    monkeypatch.setenv("NSTAKEOVER_DNS", "1.1.1.1")
    monkeypatch.setenv("NSTAKEOVER_PROBE", "ns")
    saved = load_env_runtime_settings()
    assert saved["timeout"] == 7.5
    assert saved["threads"] == runtime.DEFAULT_CONCURRENCY
    assert saved["dns"] == "1.1.1.1"

    merged = merge_runtime_settings(_args("--timeout", "2", "--retries", "0"), saved)
    assert merged["timeout"] == 2.0
    assert merged["retries"] == 0
    assert merged["dns"] == "1.1.1.1"
    assert merged["probe"] == "NS"


def test_build_config_rejects_invalid_values():
    saved = load_env_runtime_settings()
    with pytest.raises(ValueError):
        _build_config(merge_runtime_settings(_args("--threads", "0"), saved))


def test_main_json_output(fake_resolver, capsys):
    code = main(["-d", "victim.example", "-d", "safe.example", "-d", "Victim.Example", "--json", "--backoff", "0"])
    assert code == 0
    rows = {row["domain"]: row for row in json.loads(capsys.readouterr().out)}
    assert set(rows) == {"victim.example", "safe.example"}
    assert rows["victim.example"]["verdict"] == "Vulnerable"
    assert rows["victim.example"]["orphaned"] == VICTIM_NS
    assert rows["safe.example"]["verdict"] == "Safe"


def test_main_streams_lines_and_summary(fake_resolver, capsys):
    code = main(["-d", "victim.example", "--silent", "--no-color", "--backoff", "0"])
    out = capsys.readouterr().out
    assert code == 0
    assert "victim.example : Vulnerable (orphaned: ns-123.awsdns-45.com, ns-456.awsdns-67.org)" in out
    assert "Vulnerable:" in out


def test_main_empty_file_is_input_error(tmp_path: Path, capsys):
    empty = tmp_path / "empty.txt"
    empty.write_text("\n# nothing\n", encoding="utf-8")
    assert main(["-f", str(empty)]) == 1
    assert main(["-f", str(tmp_path / "missing.txt")]) == 1
    assert main(["-d", "not a domain"]) == 1


def test_collect_raw_lines_rejects_domain_with_file(tmp_path: Path):
    plain = tmp_path / "domains.txt"
    plain.write_text("a.com\n", encoding="utf-8")
    with pytest.raises(InputError):
        _collect_raw_lines(_args("-d", "b.com", "-f", str(plain)), io.StringIO(""))
    assert main(["-d", "b.com", "-f", str(plain)]) == 1


def test_main_invalid_probe_setting_exits_with_input_error(monkeypatch, fake_resolver, capsys):
    monkeypatch.setenv("NSTAKEOVER_PROBE", "A")
    assert main(["-d", "victim.example", "--json"]) == 1
    assert "Invalid settings" in capsys.readouterr().err
    assert fake_resolver.lookup_calls["victim.example"] == 0
