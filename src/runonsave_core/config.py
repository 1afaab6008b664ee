"""Configuration model and TOML config file parsing."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

from runonsave_core.errors import ConfigurationError
from runonsave_core.models import BUSY_POLICIES, BusyPolicy

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 50
DEFAULT_CONFIG_NAME = "runonsave.toml"

_KNOWN_KEYS = {
    "command",
    "debounce_ms",
    "paths",
    "skip_ignore_files",
    "patterns",
    "on_busy",
    "kill_on_exit",
}


@dataclass(frozen=True)
class WatchConfig:
    """Immutable configuration for one watch session."""

    command: str
    """Executable to run on every trigger."""

    args: tuple[str, ...] = ()
    """Arguments passed to the command verbatim."""

    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    """Quiet period after the last change before the command runs."""

    paths: tuple[Path, ...] = field(default_factory=lambda: (Path("."),))
    """Root directories watched recursively."""

    use_ignore_files: bool = True
    """Honour .gitignore/.ignore files and skip hidden entries."""

    patterns: tuple[str, ...] | None = None
    """Include patterns (gitignore style). None means every path qualifies."""

    on_busy: BusyPolicy = "queue"
    """Policy for a trigger that arrives while the command is running."""

    kill_on_exit: bool = False
    """Terminate a running command on shutdown instead of waiting for it."""

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    def validate(self) -> None:
        """Check values that argparse/TOML cannot check on their own.

        Raises:
            ConfigurationError: On the first invalid value found
        """
        if not self.command:
            raise ConfigurationError("No command given")
        if any("\0" in part for part in self.argv):
            raise ConfigurationError("Command and arguments must not contain null bytes")
        if isinstance(self.debounce_ms, bool) or not isinstance(self.debounce_ms, int):
            raise ConfigurationError(f"Debounce must be an integer number of milliseconds, got {self.debounce_ms!r}")
        if self.debounce_ms < 0:
            raise ConfigurationError(f"Debounce must not be negative, got {self.debounce_ms}")
        if not self.paths:
            raise ConfigurationError("At least one path must be watched")
        for path in self.paths:
            if not path.exists():
                raise ConfigurationError(f"Watch path does not exist: {path}")
            if not path.is_dir():
                raise ConfigurationError(f"Watch path is not a directory: {path}")
        if self.on_busy not in BUSY_POLICIES:
            raise ConfigurationError(
                f"Unknown busy policy '{self.on_busy}' (expected one of: {', '.join(BUSY_POLICIES)})"
            )


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load the ``[watch]`` table of a TOML config file.

    Keys are normalised to ``WatchConfig`` field names; relative paths are
    resolved against the config file's directory.

    Args:
        path: Path to TOML config file

    Returns:
        Dict of WatchConfig keyword overrides (only keys present in the file)

    Raises:
        ConfigurationError: If the file is missing, unparsable or has bad values
    """
    path = Path(path)

    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}\nRun 'runonsave --init' to create one.")

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigurationError(f"Failed to parse config file {path}: {e}") from e

    table = raw.get("watch", {})
    if not isinstance(table, dict):
        raise ConfigurationError(f"[watch] in {path} must be a table")

    for key in table.keys() - _KNOWN_KEYS:
        logger.warning(f"Ignoring unknown key '{key}' in {path}")

    overrides: dict[str, Any] = {}

    if "command" in table:
        command = table["command"]
        if isinstance(command, str):
            command = [command]
        if not isinstance(command, list) or not command or not all(isinstance(part, str) for part in command):
            raise ConfigurationError(f"'command' in {path} must be a non-empty list of strings")
        overrides["command"] = command[0]
        overrides["args"] = tuple(command[1:])

    if "debounce_ms" in table:
        overrides["debounce_ms"] = table["debounce_ms"]

    if "paths" in table:
        paths = table["paths"]
        if isinstance(paths, str):
            paths = [paths]
        if not isinstance(paths, list) or not all(isinstance(p, str) for p in paths):
            raise ConfigurationError(f"'paths' in {path} must be a list of strings")
        overrides["paths"] = tuple(path.parent / Path(p) for p in paths)

    if "skip_ignore_files" in table:
        overrides["use_ignore_files"] = not bool(table["skip_ignore_files"])

    if "patterns" in table:
        patterns = table["patterns"]
        if not isinstance(patterns, list) or not all(isinstance(p, str) for p in patterns):
            raise ConfigurationError(f"'patterns' in {path} must be a list of strings")
        overrides["patterns"] = tuple(patterns)

    if "on_busy" in table:
        overrides["on_busy"] = table["on_busy"]

    if "kill_on_exit" in table:
        overrides["kill_on_exit"] = bool(table["kill_on_exit"])

    logger.debug(f"Loaded {sorted(overrides)} from {path}")
    return overrides
