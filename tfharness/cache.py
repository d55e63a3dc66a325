"""Process-wide terraform plugin cache directory."""

import logging
import shutil
from pathlib import Path

from tfharness.constants import DEFAULT_PLUGIN_CACHE_DIR, PLUGIN_CACHE_DIR_MODE

logger = logging.getLogger(__name__)


class PluginCache:
    """Create and remove the directory terraform caches providers in.

    The cache only saves downloads, so failing to create it is logged and
    otherwise ignored. No locking is done; concurrent harnesses rely on
    terraform's own cache handling.

    Parameters
    ----------
    path : str | Path
        Cache directory location
    """

    def __init__(self, path: str | Path = DEFAULT_PLUGIN_CACHE_DIR) -> None:
        self.path = Path(path)

    def init(self) -> None:
        """Create the cache directory, ignoring failures."""
        try:
            self.path.mkdir(mode=PLUGIN_CACHE_DIR_MODE, parents=True, exist_ok=True)
        except OSError as e:
            logger.debug("Could not create plugin cache %s: %s", self.path, e)

    def clean(self) -> None:
        """Remove the cache directory and everything in it."""
        if self.path.exists():
            shutil.rmtree(self.path)
            logger.info("Removed plugin cache %s", self.path)
