"""Logging helpers for tfharness."""

from tfharness.logging.formatters import CommandOutputFormatter

__all__ = ["CommandOutputFormatter"]
