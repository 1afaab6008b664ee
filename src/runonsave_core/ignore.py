"""Ignore-rule and include-pattern filtering for watched paths.

Pattern syntax and matching are delegated to pathspec's gitignore flavour.
This module only discovers ignore files under the watch roots and layers them
the way git does: deeper files override shallower ones, and an excluded
directory excludes everything below it.
"""

import logging
import os
from collections.abc import Iterable
from pathlib import Path

from pathspec import GitIgnoreSpec

from runonsave_core.errors import ConfigurationError, IgnoreFileError

logger = logging.getLogger(__name__)

IGNORE_FILE_NAMES = (".gitignore", ".ignore")
"""Per-directory ignore files, lowest precedence first."""


def _absolute(path: str | Path) -> Path:
    return Path(os.path.abspath(path))


def _load_spec(path: Path) -> GitIgnoreSpec:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise IgnoreFileError(path, str(e)) from e
    try:
        return GitIgnoreSpec.from_lines(lines)
    except ValueError as e:
        raise IgnoreFileError(path, str(e)) from e


def _find_root(path: Path, roots: Iterable[Path]) -> Path | None:
    """Return the deepest root containing path."""
    best = None
    for root in roots:
        if path == root or root in path.parents:
            if best is None or len(root.parts) > len(best.parts):
                best = root
    return best


class IgnoreFilter:
    """Predicate deciding whether a changed path is excluded from triggering."""

    def __init__(self, roots: Iterable[str | Path], enabled: bool = True):
        """Discover and parse ignore files.

        Args:
            roots: Watch roots
            enabled: If False, nothing is ever ignored and no files are read

        Raises:
            IgnoreFileError: If an ignore file is unreadable or malformed
        """
        self.roots = tuple(_absolute(r) for r in roots)
        self.enabled = enabled
        self._real_roots = tuple(Path(os.path.realpath(r)) for r in self.roots)
        self._layers: list[tuple[Path, GitIgnoreSpec]] = []

        if enabled:
            for root in self.roots:
                self._load_root(root)
            # Shallow layers first so deeper ones get the last word
            self._layers.sort(key=lambda layer: len(layer[0].parts))
            logger.debug(f"Loaded {len(self._layers)} ignore file(s) under {len(self.roots)} root(s)")

    @property
    def layer_count(self) -> int:
        return len(self._layers)

    def _add_layer(self, base: Path, ignore_file: Path) -> None:
        self._layers.append((base, _load_spec(ignore_file)))
        logger.debug(f"Using ignore file {ignore_file}")

    def _load_root(self, root: Path) -> None:
        exclude = root / ".git" / "info" / "exclude"
        if exclude.is_file():
            self._add_layer(root, exclude)

        for dirpath, dirnames, filenames in os.walk(root):
            base = Path(dirpath)
            for name in IGNORE_FILE_NAMES:
                if name in filenames:
                    self._add_layer(base, base / name)
            # Ignore files inside excluded directories never apply
            dirnames[:] = [d for d in dirnames if not self._excluded(base / d, d, is_dir=True)]

    def _excluded(self, path: Path, name: str, is_dir: bool) -> bool:
        if name.startswith("."):
            return True
        verdict = None
        for base, spec in self._layers:
            if base not in path.parents:
                continue
            candidate = path.relative_to(base).as_posix()
            if is_dir:
                candidate += "/"
            include = spec.check_file(candidate).include
            if include is not None:
                verdict = include
        return bool(verdict)

    def is_ignored(self, path: str | Path, is_dir: bool | None = None) -> bool:
        """Check whether a path is excluded by hidden-entry or ignore rules.

        Args:
            path: Changed path (absolute, or relative to the cwd)
            is_dir: Whether the path is a directory; looked up on disk when None

        Returns:
            True if the path must not trigger the command
        """
        if not self.enabled:
            return False

        path = _absolute(path)
        root = _find_root(path, self.roots)
        if root is None:
            path = Path(os.path.realpath(path))
            real_root = _find_root(path, self._real_roots)
            if real_root is None:
                return False
            # Match against the layers using the un-resolved root
            root = self.roots[self._real_roots.index(real_root)]
            path = root / path.relative_to(real_root)

        parts = path.relative_to(root).parts
        current = root
        for index, part in enumerate(parts):
            current = current / part
            last = index == len(parts) - 1
            if not last:
                part_is_dir = True
            elif is_dir is None:
                part_is_dir = current.is_dir()
            else:
                part_is_dir = is_dir
            if self._excluded(current, part, part_is_dir):
                return True
        return False

    __call__ = is_ignored


class PatternFilter:
    """Include filter: only paths matching one of the patterns qualify."""

    def __init__(self, roots: Iterable[str | Path], patterns: Iterable[str]):
        self.roots = tuple(_absolute(r) for r in roots)
        self.patterns = list(patterns)
        try:
            self._spec = GitIgnoreSpec.from_lines(self.patterns)
        except ValueError as e:
            raise ConfigurationError(f"Invalid glob pattern: {e}") from e

    def matches(self, path: str | Path) -> bool:
        path = _absolute(path)
        root = _find_root(path, self.roots)
        candidate = path.relative_to(root).as_posix() if root else path.as_posix()
        return self._spec.match_file(candidate)


def build_ignore_filter(roots: Iterable[str | Path], enabled: bool) -> IgnoreFilter:
    """Build the ignore predicate for the given roots.

    When ``enabled`` is False the returned filter ignores nothing.
    """
    return IgnoreFilter(roots, enabled=enabled)
