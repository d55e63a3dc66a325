"""CLI entry point for tfharness."""

from __future__ import annotations

import json
import logging
import os
import sys
import tempfile
from pathlib import Path

import fire

from tfharness.cache import PluginCache
from tfharness.constants import DEBUG_ENV, EXIT_CONFIG_ERROR, EXIT_ERROR
from tfharness.core.config import ConfigLoader
from tfharness.core.harness import Harness
from tfharness.exceptions import HarnessError
from tfharness.logging import CommandOutputFormatter

logger = logging.getLogger(__name__)


class TfHarnessCLI:
    """Provision a terraform plan outside a test run and manage the plugin cache.

    Parameters
    ----------
    config_path : str | None
        Path to tfharness YAML configuration
    """

    def __init__(self, config_path: str | None = None) -> None:
        self._config_loader = ConfigLoader()
        self._config_path = config_path

    def apply(self, planfile: str, keep: bool = False, forward_signals: bool = True) -> str:
        """Apply planfile, print its state as JSON and destroy it again.

        Parameters
        ----------
        planfile : str
            Terraform definition to provision
        keep : bool
            Leave resources and the working directory in place
        forward_signals : bool
            Re-deliver SIGINT/SIGTERM after emergency teardown

        Returns
        -------
        str
            The parsed state document as indented JSON
        """
        config = self._config_loader.load(self._config_path)
        PluginCache(config.plugin_cache_dir).init()

        make_workdir = None
        if keep:
            config.cleanup = False
            make_workdir = lambda: Path(tempfile.mkdtemp(prefix="tfharness-"))  # noqa: E731

        with Harness(config=config, make_workdir=make_workdir) as harness:
            harness.handle_signals(forward=forward_signals)
            state = harness.apply(planfile)

            if keep:
                logger.info("Keeping resources; working directory is %s", harness.plan_dir)

            return json.dumps(state, indent=2, sort_keys=True)

    def init_cache(self) -> str:
        """Create the terraform plugin cache directory."""
        config = self._config_loader.load(self._config_path)
        PluginCache(config.plugin_cache_dir).init()
        return str(config.plugin_cache_dir)

    def clean_cache(self) -> str:
        """Remove the terraform plugin cache directory."""
        config = self._config_loader.load(self._config_path)
        PluginCache(config.plugin_cache_dir).clean()
        return str(config.plugin_cache_dir)


def main() -> None:
    """Entry point for Fire CLI with graceful error handling.

    Harness failures exit with status 1 and configuration errors with
    status 2. Set TFHARNESS_DEBUG=1 to get the traceback instead.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(CommandOutputFormatter("%(message)s"))
    logging.basicConfig(level=logging.INFO, handlers=[handler])

    debug_mode = os.environ.get(DEBUG_ENV) == "1"

    try:
        fire.Fire(TfHarnessCLI)
    except HarnessError as e:
        if debug_mode:
            raise

        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_ERROR)
    except ValueError as e:
        if debug_mode:
            raise

        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)
