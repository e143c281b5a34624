#!/usr/bin/python3
# -*- coding: utf-8 -*-
"""Top-level executable shim.

`python nstakeover.py ...` runs the CLI straight from a source checkout.
"""

import sys

from nstakeover.nstakeover import main

if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print("\nInterrupted")
        sys.exit(130)
