"""Registry of deferred teardown callbacks for use outside pytest."""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CleanupRegistry:
    """Runs registered teardown callbacks in reverse registration order.

    Stands in for a test framework's finalizer mechanism when a harness is
    used as a context manager. Continues past failing callbacks, logging a
    warning for each, so that later teardown still happens.

    Attributes
    ----------
    entries : list[dict]
        Registered callbacks in registration order
    """

    def __init__(self) -> None:
        self.entries: list[dict[str, Any]] = []

    def register(self, callback: Callable[[], None], label: str = "") -> None:
        """Register a teardown callback.

        Parameters
        ----------
        callback : Callable[[], None]
            Function invoked with no arguments during cleanup
        label : str, optional
            Descriptive label for diagnostics
        """
        self.entries.append({"callback": callback, "label": label})
        logger.debug("Registered cleanup: %s", label)

    def __call__(self, callback: Callable[[], None]) -> None:
        self.register(callback, label=getattr(callback, "__qualname__", repr(callback)))

    def cleanup_all(self) -> None:
        """Run every registered callback, newest first, then forget them."""
        while self.entries:
            entry = self.entries.pop()
            try:
                entry["callback"]()
                logger.debug("Cleaned up: %s", entry["label"])
            except Exception as e:
                logger.warning("Cleanup failed for '%s': %s", entry["label"], e)
