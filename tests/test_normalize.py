from __future__ import annotations

from pathlib import Path

import pytest

from nstakeover.core import normalize, normalize_domain, read_json_lines, read_lines
from nstakeover.errors import InputError, InvalidInputError


def test_normalize_deduplicates_case_insensitively():
    domains = normalize(["a.com", "A.com", "b.com", "a.com"])
    assert len(domains) == 2
    assert list(domains) == ["a.com", "b.com"]
    assert "a.com" in domains
    assert domains.skipped == 0


def test_normalize_strips_comments_whitespace_and_trailing_dot():
    lines = [
        "# targets",
        "  Victim.Example.  ",
        "",
        "safe.example   # second one",
        "\t",
    ]
    domains = normalize(lines)
    assert list(domains) == ["victim.example", "safe.example"]


def test_normalize_counts_malformed_lines_without_failing():
    domains = normalize(["good.example", "not a domain", "-bad-.example", "localhost", "x" * 70 + ".com"])
    assert list(domains) == ["good.example"]
    assert domains.skipped == 4


def test_normalize_all_malformed_returns_empty_set():
    domains = normalize(["not a domain", "also bad"])
    assert len(domains) == 0
    assert domains.skipped == 2


@pytest.mark.parametrize("lines", [[], [""], ["   ", "# only a comment", ""]])
def test_normalize_empty_input_raises(lines):
    with pytest.raises(InvalidInputError):
        normalize(lines)


def test_normalize_domain_accepts_url_and_idn():
    assert normalize_domain("https://Sub.Example.com/path?q=1") == "sub.example.com"
    assert normalize_domain("example.com:53") == "example.com"
    assert normalize_domain("bücher.example") == "xn--bcher-kva.example"
    assert normalize_domain("") is None
    assert normalize_domain("single") is None


def test_read_lines_and_missing_file(tmp_path: Path):
    source = tmp_path / "domains.txt"
    source.write_text("example.com\n\n# c\nwww.test.org\n", encoding="utf-8")
    assert read_lines(str(source)) == ["example.com", "", "# c", "www.test.org"]
    with pytest.raises(InputError):
        read_lines(str(tmp_path / "nope.txt"))


def test_read_json_lines_requires_list_of_strings():
    assert read_json_lines('["a.com", "b.com"]') == ["a.com", "b.com"]
    with pytest.raises(InputError):
        read_json_lines('{"domain": "a.com"}')
    with pytest.raises(InputError):
        read_json_lines("[1, 2]")
    with pytest.raises(InputError):
        read_json_lines("not json")


def test_normalize_domain_rejects_leading_dot():
    assert normalize_domain("example.com.") == "example.com"
    assert normalize_domain(".example.com") is None
    assert normalize_domain("a..example.com") is None
