"""Pluggable notification protocol for runonsave_core.

Decouples the run controller and orchestrator from how messages reach the user.
Can be replaced with custom handlers for testing or embedding.
"""

import logging
import sys
from typing import Protocol, TextIO


class RunOnSaveNotifier(Protocol):
    """Protocol for notifications - host can provide custom implementation."""

    def info(self, message: str) -> None:
        """Informational message."""
        ...

    def warning(self, message: str) -> None:
        """Warning message."""
        ...

    def error(self, message: str) -> None:
        """Error message."""
        ...


class NoOpNotifier:
    """Silent no-op notifier - default for embedded mode."""

    def info(self, msg: str) -> None:
        """Do nothing."""
        pass

    def warning(self, msg: str) -> None:
        """Do nothing."""
        pass

    def error(self, msg: str) -> None:
        """Do nothing."""
        pass


class LoggingNotifier:
    """Implementation using stdlib logging - for debugging/development."""

    def info(self, msg: str) -> None:
        logging.info(msg)

    def warning(self, msg: str) -> None:
        logging.warning(msg)

    def error(self, msg: str) -> None:
        logging.error(msg)


class ConsoleNotifier:
    """Prints prefixed status lines to stderr, keeping the command's stdout clean."""

    def __init__(self, stream: TextIO | None = None, prefix: str = "[runonsave]"):
        self.stream = stream
        self.prefix = prefix

    def _write(self, msg: str) -> None:
        stream = self.stream or sys.stderr
        print(f"{self.prefix} {msg}", file=stream, flush=True)

    def info(self, msg: str) -> None:
        self._write(msg)

    def warning(self, msg: str) -> None:
        self._write(msg)

    def error(self, msg: str) -> None:
        self._write(f"error: {msg}")
