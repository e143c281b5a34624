from __future__ import annotations

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ..core import DEFAULT_DNS_SERVER
from ..engine.runtime import DEFAULT_BACKOFF_BASE, DEFAULT_CONCURRENCY, DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT

ENV_PREFIX = "NSTAKEOVER_"


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = value.strip()
    return text if text else None


def _env(name: str) -> Optional[str]:
    return _normalize_optional(os.getenv(ENV_PREFIX + name))


def load_env_runtime_settings() -> Dict[str, Any]:
    """Runtime defaults from `NSTAKEOVER_*` variables (and a local `.env`).

    Unparseable values fall back to built-in defaults rather than failing, so a
    stale environment never blocks a scan.
    """
    load_dotenv()

    def _parse_float(value: Optional[str], default: float) -> float:
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            return default

    def _parse_int(value: Optional[str], default: int) -> int:
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            return default

    return {
        "dns": _env("DNS") or DEFAULT_DNS_SERVER,
        "timeout": _parse_float(_env("TIMEOUT"), DEFAULT_TIMEOUT),
        "threads": _parse_int(_env("THREADS"), DEFAULT_CONCURRENCY),
        "retries": _parse_int(_env("RETRIES"), DEFAULT_MAX_RETRIES),
        "backoff": _parse_float(_env("BACKOFF"), DEFAULT_BACKOFF_BASE),
        "probe": (_env("PROBE") or "SOA").upper(),
        "providers": _env("PROVIDERS"),
    }


def merge_runtime_settings(args: Any, saved: Dict[str, Any]) -> Dict[str, Any]:
    """Apply CLI > environment > built-in defaults for every runtime knob."""
    merged: Dict[str, Any] = {}
    for key in ("dns", "timeout", "threads", "retries", "backoff", "probe", "providers"):
        value = getattr(args, key, None)
        merged[key] = value if value is not None else saved.get(key)
    if merged["probe"]:
        merged["probe"] = str(merged["probe"]).upper()
    return merged
