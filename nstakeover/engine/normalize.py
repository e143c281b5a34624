from __future__ import annotations

"""Input cleanup: raw lines in, unique normalized domains out.

Malformed lines are counted and dropped; only a completely empty input is an
error, so one bad line in a large list never blocks the scan.
"""

import json
import re
from pathlib import Path
from typing import Iterable, List, Optional

from ..errors import InputError, InvalidInputError
from .models import DomainSet

LABEL_RE = re.compile(r"^[a-z0-9_-]+$")
COMMENT_RE = re.compile(r"(^|\s)#.*$")


def _strip_comment(line: str) -> str:
    return COMMENT_RE.sub("", line).strip()


def normalize_domain(value: str) -> Optional[str]:
    host = (value or "").strip().lower()
    if not host:
        return None

    host = re.sub(r"^\w+://", "", host)
    host = host.split("/", 1)[0]
    host = host.split(":", 1)[0].rstrip(".")
    if not host or " " in host or "\t" in host:
        return None

    try:
        host = host.encode("idna").decode("ascii")
    except UnicodeError:
        return None

    if len(host) > 253:
        return None
    labels = host.split(".")
    if len(labels) < 2:
        return None
    if any(not lbl or len(lbl) > 63 for lbl in labels):
        return None
    if any(not LABEL_RE.match(lbl) or lbl.startswith("-") or lbl.endswith("-") for lbl in labels):
        return None
    return host


def normalize(raw_lines: Iterable[str]) -> DomainSet:
    """Build a DomainSet from raw input lines.

    Raises InvalidInputError when the input holds no content at all (only
    blanks and comments). Lines that fail validation only bump `skipped`.
    """
    result = DomainSet()
    seen: set[str] = set()
    content_lines = 0
    for raw in raw_lines:
        line = _strip_comment(str(raw or ""))
        if not line:
            continue
        content_lines += 1
        domain = normalize_domain(line)
        if domain is None:
            result.skipped += 1
            continue
        if domain in seen:
            continue
        seen.add(domain)
        result.domains.append(domain)

    if content_lines == 0:
        raise InvalidInputError("Input contains no domains")
    return result


def read_lines(path: str) -> List[str]:
    try:
        with Path(path).open("r", encoding="utf-8", errors="ignore") as fh:
            return fh.read().splitlines()
    except OSError as exc:
        raise InputError(f"Cannot read {path}: {exc.__class__.__name__}: {exc}") from exc


def read_json_lines(text: str) -> List[str]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise InputError(f"Invalid JSON input: {exc}") from exc
    if not isinstance(data, list) or not all(isinstance(item, str) for item in data):
        raise InputError("JSON input must be a list of domain strings")
    return data
