"""Collaborators for locating terraform and staging plan files."""

import logging
import os
import shutil
from pathlib import Path

from tfharness.constants import PLAN_FILENAME, TERRAFORM_BINARY
from tfharness.exceptions import SetupError

logger = logging.getLogger(__name__)


def find_terraform(explicit_path: str | None = None) -> str:
    """Return the terraform executable to drive.

    Parameters
    ----------
    explicit_path : str | None
        Configured path (TFTEST_TERRAFORM or config file). Used as-is when set

    Returns
    -------
    str
        Path to the terraform executable

    Raises
    ------
    SetupError
        If no path is configured and terraform is not on PATH
    """
    if explicit_path:
        if not os.access(explicit_path, os.X_OK):
            raise SetupError(f"terraform executable {explicit_path} is not executable")
        return explicit_path

    found = shutil.which(TERRAFORM_BINARY)
    if not found:
        raise SetupError(
            "terraform not found on PATH.\n\n"
            "Install it from https://developer.hashicorp.com/terraform/install\n"
            "or point TFTEST_TERRAFORM at the executable."
        )

    logger.debug("Using terraform at %s", found)
    return found


def copy_plan(plan_source: str | Path, plan_dir: str | Path) -> Path:
    """Copy a plan definition verbatim into plan_dir as plan.tf.

    Raises
    ------
    SetupError
        If the source cannot be read or the target cannot be written
    """
    target = Path(plan_dir) / PLAN_FILENAME

    try:
        with open(plan_source, "rb") as source:
            try:
                with open(target, "wb") as destination:
                    shutil.copyfileobj(source, destination)
            except OSError as e:
                raise SetupError(f"Could not copy plan to {target}: {e}") from e
    except OSError as e:
        raise SetupError(f"Could not open plan file: {e}") from e

    logger.debug("Copied plan %s to %s", plan_source, target)
    return target
