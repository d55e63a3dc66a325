import copy
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from omegaconf import OmegaConf
from omegaconf.errors import InterpolationResolutionError

from tfharness.constants import (
    CANCEL_GRACE_SECONDS,
    CONFIG_ENV,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_PLUGIN_CACHE_DIR,
    NO_CLEANUP_ENV,
    TERRAFORM_PATH_ENV,
)

logger = logging.getLogger(__name__)


@dataclass
class HarnessConfig:
    """Resolved harness settings.

    Attributes
    ----------
    terraform_path : str | None
        Explicit terraform executable; looked up on PATH when None
    plugin_cache_dir : Path
        Directory shared by all harnesses for provider downloads
    cleanup : bool
        Register destroy with the enclosing test after apply
    handle_signals : bool
        Install the signal guard when the pytest fixture builds a harness
    forward_signals : bool
        Re-deliver intercepted signals after emergency teardown
    cancel_grace_seconds : float
        Time a cancelled terraform process gets before being killed
    """

    terraform_path: str | None = None
    plugin_cache_dir: Path = Path(DEFAULT_PLUGIN_CACHE_DIR)
    cleanup: bool = True
    handle_signals: bool = False
    forward_signals: bool = True
    cancel_grace_seconds: float = CANCEL_GRACE_SECONDS


class ConfigLoader:
    """Load YAML configuration, merge it with defaults and apply environment overrides."""

    def __init__(self) -> None:
        self.BUILT_IN_DEFAULTS = {
            "terraform_path": None,
            "plugin_cache_dir": DEFAULT_PLUGIN_CACHE_DIR,
            "cleanup": True,
            "handle_signals": False,
            "forward_signals": True,
            "cancel_grace_seconds": CANCEL_GRACE_SECONDS,
        }

    def load_config(self, config_path: str | None = None) -> dict[str, Any]:
        """Load configuration from YAML file.

        Parameters
        ----------
        config_path : str | None
            Path to YAML config file. If None, checks TFHARNESS_CONFIG env var,
            then falls back to tfharness.yaml

        Returns
        -------
        dict[str, Any]
            Parsed configuration with all variable interpolations resolved,
            or an empty dict when no file exists

        Raises
        ------
        ValueError
            If the file is not valid YAML or variables cannot be resolved
        RuntimeError
            If the file exists but cannot be read
        """
        if config_path is None:
            config_path = os.environ.get(CONFIG_ENV, DEFAULT_CONFIG_FILENAME)

        config_file = Path(config_path)

        if not config_file.exists():
            return {}

        try:
            cfg = OmegaConf.load(config_file)
        except yaml.YAMLError as e:
            logger.error("Failed to parse YAML config file %s: %s", config_file, e)
            raise ValueError(f"Invalid YAML in {config_file}: {e}") from e
        except OSError as e:
            logger.error("Failed to read config file %s: %s", config_file, e)
            raise RuntimeError(f"Failed to read config file {config_file}: {e}") from e

        if cfg is None:
            return {}

        copied_vars: list[str] = []
        if "vars" in cfg:
            vars_dict = OmegaConf.to_container(cfg.vars, resolve=False)
            for key, value in vars_dict.items():
                if key not in cfg:
                    cfg[key] = value
                    copied_vars.append(key)

        try:
            config = OmegaConf.to_container(cfg, resolve=True, throw_on_missing=True)
        except InterpolationResolutionError as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e
        except (KeyError, AttributeError) as e:
            logger.error("Failed to resolve configuration variables: %s", e)
            raise ValueError(f"Configuration variable resolution error: {e}") from e

        if not isinstance(config, dict):
            raise ValueError(f"Configuration in {config_file} must be a mapping")

        for key in ["vars", *copied_vars]:
            config.pop(key, None)
        return config

    def merge(self, config: dict[str, Any]) -> dict[str, Any]:
        """Merge file configuration over built-in defaults, then apply env overrides.

        TFTEST_TERRAFORM replaces terraform_path; a non-empty NO_CLEANUP
        turns cleanup off.
        """
        merged = copy.deepcopy(self.BUILT_IN_DEFAULTS)

        for key, value in config.items():
            merged[key] = value

        terraform_override = os.environ.get(TERRAFORM_PATH_ENV)
        if terraform_override:
            merged["terraform_path"] = terraform_override

        if os.environ.get(NO_CLEANUP_ENV):
            merged["cleanup"] = False

        return merged

    def validate_config(self, config: dict[str, Any]) -> None:
        """Validate configuration types.

        Parameters
        ----------
        config : dict[str, Any]
            Merged configuration to validate

        Raises
        ------
        ValueError
            If configuration is invalid
        """
        unknown = sorted(set(config) - set(self.BUILT_IN_DEFAULTS))
        if unknown:
            raise ValueError(f"Unknown configuration keys: {unknown}")

        if config["terraform_path"] is not None and not isinstance(
            config["terraform_path"], str
        ):
            raise ValueError("terraform_path must be a string")

        if not isinstance(config["plugin_cache_dir"], str) or not config["plugin_cache_dir"]:
            raise ValueError("plugin_cache_dir must be a non-empty string")

        for field in ("cleanup", "handle_signals", "forward_signals"):
            if not isinstance(config[field], bool):
                raise ValueError(f"{field} must be a boolean")

        grace = config["cancel_grace_seconds"]
        if isinstance(grace, bool) or not isinstance(grace, (int, float)):
            raise ValueError("cancel_grace_seconds must be a number")

        if grace < 0:
            raise ValueError("cancel_grace_seconds must not be negative")

    def load(self, config_path: str | None = None) -> HarnessConfig:
        """Load, merge and validate configuration into a HarnessConfig."""
        merged = self.merge(self.load_config(config_path))
        self.validate_config(merged)

        return HarnessConfig(
            terraform_path=merged["terraform_path"],
            plugin_cache_dir=Path(merged["plugin_cache_dir"]).expanduser(),
            cleanup=merged["cleanup"],
            handle_signals=merged["handle_signals"],
            forward_signals=merged["forward_signals"],
            cancel_grace_seconds=float(merged["cancel_grace_seconds"]),
        )
