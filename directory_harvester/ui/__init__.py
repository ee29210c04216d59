"""User interface helpers."""

from .progress import ProgressReporter

__all__ = ["ProgressReporter"]
