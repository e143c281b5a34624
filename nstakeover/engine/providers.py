from __future__ import annotations

"""Cloud DNS nameserver naming conventions.

The hosted-zone nameserver pattern is data, not code: defaults are built in and
`~/.nstakeover/providers.json` (or `$NSTAKEOVER_PROVIDERS`) can replace them
when a provider changes its naming scheme.
"""

import json
import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Pattern, Tuple

logger = logging.getLogger("nstakeover")

CONFIG_DIR = Path.home() / ".nstakeover"
PROVIDERS_PATH = CONFIG_DIR / "providers.json"


@dataclass(frozen=True)
class ProviderPattern:
    name: str
    regex: Pattern[str]

    def matches(self, host: str) -> bool:
        return bool(self.regex.match(host))


def _default_specs() -> List[Dict[str, Any]]:
    return [
        {
            "name": "route53",
            "enabled": True,
            # ns-1234.awsdns-56.com / .net / .org / .co.uk
            "patterns": [r"^ns-\d{1,4}\.awsdns-\d{1,3}\.(com|net|org|co\.uk)$"],
        },
    ]


def _compile_specs(specs: Iterable[Any]) -> List[ProviderPattern]:
    compiled: List[ProviderPattern] = []
    for spec in specs:
        if not isinstance(spec, dict):
            continue
        name = str(spec.get("name") or "").strip().lower()
        if not name or not bool(spec.get("enabled", True)):
            continue
        patterns = spec.get("patterns") or []
        if isinstance(patterns, str):
            patterns = [patterns]
        for raw in patterns:
            try:
                compiled.append(ProviderPattern(name=name, regex=re.compile(str(raw), re.IGNORECASE)))
            except re.error as exc:
                logger.debug("Skipping invalid pattern for %s (%r): %s", name, raw, exc)
    return compiled


def default_provider_patterns() -> List[ProviderPattern]:
    return _compile_specs(_default_specs())


def _providers_config_path(path: Optional[str] = None) -> Optional[Path]:
    if path:
        return Path(path).expanduser()
    custom = (os.getenv("NSTAKEOVER_PROVIDERS") or "").strip()
    if custom:
        return Path(custom).expanduser()
    return PROVIDERS_PATH if PROVIDERS_PATH.is_file() else None


def load_provider_patterns(path: Optional[str] = None) -> List[ProviderPattern]:
    """Load provider patterns, falling back to the built-in defaults.

    A missing, unreadable or empty config never disables detection: the
    defaults are used and the reason is logged at debug level.
    """
    config_path = _providers_config_path(path)
    if config_path is None:
        return default_provider_patterns()
    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Cannot read providers config %s: %s", config_path, exc)
        return default_provider_patterns()

    specs = data.get("providers") if isinstance(data, dict) else data
    if not isinstance(specs, list):
        logger.debug("Providers config %s has no provider list", config_path)
        return default_provider_patterns()

    compiled = _compile_specs(specs)
    if not compiled:
        logger.debug("Providers config %s yields no usable pattern", config_path)
        return default_provider_patterns()
    return compiled


def match_provider(host: str, patterns: Iterable[ProviderPattern]) -> Optional[str]:
    candidate = (host or "").strip().lower().rstrip(".")
    if not candidate:
        return None
    for pattern in patterns:
        if pattern.matches(candidate):
            return pattern.name
    return None


def partition_nameservers(
    nameservers: Iterable[str],
    patterns: Iterable[ProviderPattern],
) -> Tuple[List[Tuple[str, str]], List[str]]:
    """Split nameservers into (host, provider) cloud entries and the rest."""
    pattern_list = list(patterns)
    cloud: List[Tuple[str, str]] = []
    other: List[str] = []
    for host in nameservers:
        provider = match_provider(host, pattern_list)
        if provider:
            cloud.append((host, provider))
        else:
            other.append(host)
    return cloud, other
