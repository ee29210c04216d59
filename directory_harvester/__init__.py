"""Resilient business-directory harvester."""

__version__ = "0.1.0"
