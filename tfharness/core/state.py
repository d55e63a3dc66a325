"""Holder for the decoded terraform state document."""

from __future__ import annotations

import copy
import json
import logging
import threading
from pathlib import Path
from typing import Any

from tfharness.exceptions import StateDecodeError

logger = logging.getLogger(__name__)

State = dict[str, Any]


class StateStore:
    """Most recently parsed state document and the working directory it came from.

    The document is replaced wholesale on every successful parse and left
    untouched when a parse fails. Callers always get a deep copy, so the
    stored document cannot be edited from outside.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state: State | None = None
        self._plan_dir: Path | None = None

    @property
    def state(self) -> State | None:
        with self._lock:
            return copy.deepcopy(self._state)

    @property
    def plan_dir(self) -> Path | None:
        with self._lock:
            return self._plan_dir

    @plan_dir.setter
    def plan_dir(self, value: Path | None) -> None:
        with self._lock:
            self._plan_dir = value

    def parse(self, path: str | Path) -> State:
        """Decode the state document at path and store it.

        Parameters
        ----------
        path : str | Path
            Location of terraform.tfstate

        Returns
        -------
        State
            A copy of the decoded document

        Raises
        ------
        StateDecodeError
            If the file cannot be read or does not hold a JSON object
        """
        path = Path(path)

        try:
            with open(path, encoding="utf-8") as f:
                document = json.load(f)
        except OSError as e:
            raise StateDecodeError(f"while reading tfstate: {e}") from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StateDecodeError(f"while decoding tfstate JSON: {e}") from e

        if not isinstance(document, dict):
            raise StateDecodeError(
                "while decoding tfstate JSON: expected an object, "
                f"got {type(document).__name__}"
            )

        with self._lock:
            self._state = document

        logger.debug("Parsed state from %s (%d top-level keys)", path, len(document))
        return copy.deepcopy(document)
