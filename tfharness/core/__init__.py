"""Core tfharness functionality."""

from __future__ import annotations

from tfharness.core.cleanup import CleanupRegistry
from tfharness.core.commands import CommandResult, CommandSerializer, InvocationToken
from tfharness.core.config import ConfigLoader, HarnessConfig
from tfharness.core.harness import Harness
from tfharness.core.signals import SignalGuard
from tfharness.core.state import State, StateStore

__all__ = [
    "CleanupRegistry",
    "CommandResult",
    "CommandSerializer",
    "ConfigLoader",
    "Harness",
    "HarnessConfig",
    "InvocationToken",
    "SignalGuard",
    "State",
    "StateStore",
]
