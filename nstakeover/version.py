"""Version information for nstakeover."""

__version__ = "1.2.0"
