"""Command-line interface for tfharness."""

from __future__ import annotations

from tfharness.cli.main import TfHarnessCLI, main

__all__ = ["TfHarnessCLI", "main"]
