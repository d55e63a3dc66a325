"""Logging formatters for terraform output."""

import logging


class CommandOutputFormatter(logging.Formatter):
    """Logging formatter that prefixes terraform output with its subcommand."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a terraform subcommand prefix if present.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message with optional ``[terraform <subcommand>]`` prefix
        """
        msg = super().format(record)
        command = getattr(record, "tf_command", None)

        if command:
            return f"[terraform {command}] {msg}"

        return msg
