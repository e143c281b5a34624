"""Public package surface for nstakeover.

Importing `nstakeover` exposes the high-level API function (`NSTAKEOVER`), the
streaming `scan` coroutine and package version, keeping internals hidden by
default.
"""

from .core import NSTAKEOVER, ScanConfig, Verdict, scan
from .version import __version__

__all__ = ["NSTAKEOVER", "ScanConfig", "Verdict", "scan", "__version__"]
