"""Serialized, cancellation-aware execution of terraform invocations."""

from __future__ import annotations

import logging
import os
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path

from tfharness.constants import (
    CANCEL_GRACE_SECONDS,
    DEFAULT_PLUGIN_CACHE_DIR,
    OUTPUT_LOGGER_NAME,
    PLUGIN_CACHE_ENV,
)
from tfharness.exceptions import CommandCancelledError, CommandError

logger = logging.getLogger(__name__)
output_logger = logging.getLogger(OUTPUT_LOGGER_NAME)


@dataclass
class CommandResult:
    """Outcome of a completed terraform invocation.

    Attributes
    ----------
    argv : list[str]
        Arguments passed to terraform (executable excluded)
    returncode : int
        Process exit status
    output : str
        Combined stdout/stderr of the process
    """

    argv: list[str]
    returncode: int
    output: str


def subcommand_of(argv: list[str]) -> str:
    """Return the terraform subcommand in argv, skipping global flags."""
    for arg in argv:
        if not arg.startswith("-"):
            return arg

    return ""


class InvocationToken:
    """Handle on the single terraform process currently allowed to run.

    Cancelling the token terminates the bound process and reaps it, so once
    ``cancel`` returns the process is gone.

    Parameters
    ----------
    process : subprocess.Popen
        Process bound to this token
    grace_seconds : float
        Time allowed between SIGTERM and SIGKILL
    """

    def __init__(self, process: subprocess.Popen, grace_seconds: float) -> None:
        self.process = process
        self.grace_seconds = grace_seconds
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        """Whether the token has been invalidated."""
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Invalidate the token and terminate its process if it is still running."""
        if self.process.poll() is not None:
            return

        self._cancelled.set()

        logger.debug("Cancelling terraform process %s", self.process.pid)
        self.process.terminate()

        try:
            self.process.wait(timeout=self.grace_seconds)
        except subprocess.TimeoutExpired:
            logger.warning(
                "terraform process %s ignored SIGTERM for %.1fs, killing it",
                self.process.pid,
                self.grace_seconds,
            )
            self.process.kill()
            self.process.wait()


class CommandSerializer:
    """Run terraform so that at most one invocation is alive at a time.

    A lock guards command setup. Issuing a new invocation cancels the token of
    any invocation still in flight, waits for its process to exit, then
    launches the new one under a fresh token. Output collection happens
    outside the lock so that a later call can cancel an earlier one.

    Parameters
    ----------
    terraform_path : str
        Path to the terraform executable
    plugin_cache_dir : str | Path
        Directory exported to terraform as TF_PLUGIN_CACHE_DIR
    cancel_grace_seconds : float
        Time a cancelled process gets to exit before it is killed
    """

    def __init__(
        self,
        terraform_path: str,
        plugin_cache_dir: str | Path = DEFAULT_PLUGIN_CACHE_DIR,
        cancel_grace_seconds: float = CANCEL_GRACE_SECONDS,
    ) -> None:
        self.terraform_path = terraform_path
        self.plugin_cache_dir = Path(plugin_cache_dir)
        self.cancel_grace_seconds = cancel_grace_seconds
        self._lock = threading.Lock()
        self._token: InvocationToken | None = None

    @property
    def active(self) -> bool:
        """Whether an invocation is currently in flight."""
        with self._lock:
            return self._token is not None and not self._token.cancelled

    def _environment(self) -> dict[str, str]:
        env = dict(os.environ)
        env[PLUGIN_CACHE_ENV] = str(self.plugin_cache_dir)
        return env

    def cancel(self) -> None:
        """Cancel the in-flight invocation, if any, without starting another."""
        with self._lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None

    def run(self, working_dir: str | Path, argv: list[str]) -> CommandResult:
        """Run terraform with argv inside working_dir.

        Parameters
        ----------
        working_dir : str | Path
            Directory the process runs in
        argv : list[str]
            Arguments following the executable (e.g. ["apply", "-auto-approve"])

        Returns
        -------
        CommandResult
            Exit status and combined output of a successful invocation

        Raises
        ------
        CommandCancelledError
            If a newer invocation cancelled this one
        CommandError
            If terraform could not be launched, exited non-zero, or its
            output could not be read (the process is reaped first)
        """
        cmd = [self.terraform_path, *argv]

        with self._lock:
            if self._token is not None:
                self._token.cancel()
                self._token = None

            logger.info("Executing: %s (in %s)", " ".join(cmd), working_dir)

            try:
                process = subprocess.Popen(
                    cmd,
                    cwd=str(working_dir),
                    env=self._environment(),
                    stdout=subprocess.PIPE,
                    stderr=subprocess.STDOUT,
                    stdin=subprocess.DEVNULL,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    bufsize=1,
                )
            except OSError as e:
                raise CommandError(f"could not launch {cmd[0]}: {e}", argv=argv) from e

            token = InvocationToken(process, self.cancel_grace_seconds)
            self._token = token

        try:
            output = self._collect_output(token, argv)
        except Exception as e:
            token.cancel()
            raise CommandError(
                f"while reading terraform {subcommand_of(argv)} output: {e}",
                argv=argv,
                returncode=token.process.returncode,
            ) from e
        except BaseException:
            token.cancel()
            raise
        finally:
            with self._lock:
                if self._token is token:
                    self._token = None

        returncode = token.process.returncode

        if token.cancelled:
            raise CommandCancelledError(
                f"terraform {subcommand_of(argv)} was cancelled by a newer invocation",
                argv=argv,
                returncode=returncode,
                output=output,
            )

        if returncode != 0:
            raise CommandError(
                f"terraform {subcommand_of(argv)} failed with exit code {returncode}",
                argv=argv,
                returncode=returncode,
                output=output,
            )

        return CommandResult(argv=list(argv), returncode=returncode, output=output)

    def _collect_output(self, token: InvocationToken, argv: list[str]) -> str:
        subcommand = subcommand_of(argv)
        lines: list[str] = []
        process = token.process

        with process.stdout:
            for line in process.stdout:
                lines.append(line)
                output_logger.info(
                    "%s", line.rstrip("\n"), extra={"tf_command": subcommand}
                )

        process.wait()
        return "".join(lines)
