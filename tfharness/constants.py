"""Global constants for tfharness.

Filenames, environment variable names and defaults shared by the harness,
the pytest plugin and the command-line entry point.
"""

from enum import Enum

TERRAFORM_BINARY = "terraform"
"""Executable name looked up on PATH when no explicit path is configured."""

PLAN_FILENAME = "plan.tf"
"""Filename the caller's plan definition is copied to inside the working directory."""

TFSTATE_FILENAME = "terraform.tfstate"
"""Filename of the state document terraform writes into the working directory."""

DEFAULT_PLUGIN_CACHE_DIR = "/tmp/tftest/plugin_cache"
"""Process-wide location for downloaded terraform providers.

Shared by every harness in the test process so provider downloads happen
once per host instead of once per working directory.
"""

PLUGIN_CACHE_DIR_MODE = 0o700
"""Permissions used when creating the plugin cache directory."""

TERRAFORM_PATH_ENV = "TFTEST_TERRAFORM"
"""Environment variable overriding the terraform executable path."""

NO_CLEANUP_ENV = "NO_CLEANUP"
"""Environment variable that, when non-empty, suppresses automatic teardown."""

PLUGIN_CACHE_ENV = "TF_PLUGIN_CACHE_DIR"
"""Environment variable terraform reads to locate its plugin cache."""

CONFIG_ENV = "TFHARNESS_CONFIG"
"""Environment variable pointing at the YAML configuration file."""

DEFAULT_CONFIG_FILENAME = "tfharness.yaml"
"""Configuration file consulted when TFHARNESS_CONFIG is unset."""

DEBUG_ENV = "TFHARNESS_DEBUG"
"""Environment variable that makes the CLI re-raise errors with tracebacks."""

CANCEL_GRACE_SECONDS = 10.0
"""Seconds a cancelled terraform process is given to exit after SIGTERM.

Terraform releases its state lock on SIGTERM; the process is killed
outright if it has not exited within this window.
"""

SIGNAL_GUARD_JOIN_TIMEOUT_SECONDS = 5.0
"""Seconds to wait for the signal watcher thread to exit when disarming."""

OUTPUT_LOGGER_NAME = "tfharness.output"
"""Logger receiving each line of terraform output."""

EXIT_SUCCESS = 0
"""Exit code indicating successful program completion."""

EXIT_ERROR = 1
"""Exit code indicating a harness or terraform failure."""

EXIT_CONFIG_ERROR = 2
"""Exit code indicating a configuration error."""


class Phase(str, Enum):
    """Lifecycle phases of a harness session."""

    UNINITIALIZED = "uninitialized"
    APPLIED = "applied"
    REFRESHED = "refreshed"
    DESTROYED = "destroyed"
