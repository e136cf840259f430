"""Per-user marketing ROI pipeline for the fitness app."""

__version__ = "0.1.0"
