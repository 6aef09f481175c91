"""Command line entry points for the perf recorder."""

from .record import main

__all__ = ["main"]
