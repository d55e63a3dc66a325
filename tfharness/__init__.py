"""Drive terraform from tests: provision a plan, read its state, always tear down."""

from __future__ import annotations

from tfharness.cache import PluginCache
from tfharness.constants import Phase
from tfharness.core import (
    CommandResult,
    CommandSerializer,
    ConfigLoader,
    Harness,
    HarnessConfig,
    SignalGuard,
    State,
)
from tfharness.exceptions import (
    CommandCancelledError,
    CommandError,
    HarnessError,
    LifecycleError,
    SetupError,
    StateDecodeError,
)

__version__ = "0.1.0"

__all__ = [
    "CommandCancelledError",
    "CommandError",
    "CommandResult",
    "CommandSerializer",
    "ConfigLoader",
    "Harness",
    "HarnessConfig",
    "HarnessError",
    "LifecycleError",
    "Phase",
    "PluginCache",
    "SetupError",
    "SignalGuard",
    "State",
    "StateDecodeError",
]
