"""Exception hierarchy for harness failures.

Every failure the harness can report is a ``HarnessError``. Callers that
need to abort a test convert these into their framework's fatal failure;
the pytest plugin does this with ``pytest.fail``.
"""

from __future__ import annotations


class HarnessError(Exception):
    """Base exception for all harness failures."""


class SetupError(HarnessError):
    """Raised when the session cannot be prepared.

    Covers a missing terraform executable, an unreadable or uncopyable plan
    file, and signal handling installed from a non-main thread.
    """


class LifecycleError(HarnessError):
    """Raised when an operation is invalid for the current lifecycle phase."""


class StateDecodeError(HarnessError):
    """Raised when the state document is missing or malformed."""


class CommandError(HarnessError):
    """Raised when a terraform invocation fails to launch or exits non-zero.

    Parameters
    ----------
    message : str
        Human readable description of the failure
    argv : list[str]
        Arguments passed to terraform
    returncode : int | None
        Process exit status, or None if the process never started
    output : str
        Combined stdout/stderr captured from the process
    """

    def __init__(
        self,
        message: str,
        argv: list[str],
        returncode: int | None = None,
        output: str = "",
    ) -> None:
        super().__init__(message)
        self.argv = argv
        self.returncode = returncode
        self.output = output

    def __str__(self) -> str:
        message = super().__str__()

        if self.output:
            return f"{message}\n{self.output.rstrip()}"

        return message


class CommandCancelledError(CommandError):
    """Raised when an invocation was terminated because a newer one replaced it."""
