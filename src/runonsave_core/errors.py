"""Exception hierarchy for runonsave.

Fatal errors (configuration, watch source) propagate to the CLI entry point.
SpawnError is recoverable and only reported.
"""


class RunOnSaveError(Exception):
    """Base class for all runonsave errors."""


class ConfigurationError(RunOnSaveError):
    """Invalid configuration detected before the watch loop starts."""


class IgnoreFileError(ConfigurationError):
    """An ignore file could not be read or contains an invalid pattern."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid ignore file {path}: {reason}")


class WatchSourceError(RunOnSaveError):
    """The file system notification source failed and cannot make progress."""


class SpawnError(RunOnSaveError):
    """The configured command could not be launched."""

    def __init__(self, argv: list[str], cause: Exception):
        self.argv = argv
        self.cause = cause
        reason = getattr(cause, "strerror", None) or cause
        super().__init__(f"Command failed to launch: {argv[0]}: {reason}")
