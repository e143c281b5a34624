#!/usr/bin/env python3
"""Console-script module.

Re-exports the CLI entrypoint next to the public API so scripts can
`import nstakeover.nstakeover` without depending on internal file structure.
"""

from .cli import main
from .core import NSTAKEOVER, ClassificationResult, ScanConfig, Verdict, classify, normalize, scan
from .output import output, print_result
from .version import __version__

__all__ = [
    "__version__",
    "ClassificationResult",
    "NSTAKEOVER",
    "ScanConfig",
    "Verdict",
    "classify",
    "main",
    "normalize",
    "output",
    "print_result",
    "scan",
]
