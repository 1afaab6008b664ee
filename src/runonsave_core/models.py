"""Shared data models for runonsave_core."""

import signal
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Literal

ChangeKind = Literal["create", "modify", "remove", "rename"]
"""Kind of a raw file system change."""

BusyPolicy = Literal["queue", "restart"]
"""What a Trigger does when the command is still running."""

BUSY_POLICIES: tuple[str, ...] = ("queue", "restart")


@dataclass(frozen=True)
class RawEvent:
    """A single change notification from the event source."""

    path: Path
    """Absolute path of the changed entry."""

    kind: ChangeKind
    """What happened to it."""

    is_directory: bool = False
    """Whether the entry is a directory."""


@dataclass(frozen=True)
class Trigger:
    """Quiet period elapsed, run the command now."""

    event_count: int = 0
    """Number of accepted events coalesced into this trigger (for logging)."""


class RunState(Enum):
    """Completion status of a RunHandle."""

    RUNNING = "running"
    EXITED = "exited"
    SIGNALED = "signaled"


@dataclass
class RunHandle:
    """One invocation of the configured command."""

    pid: int
    argv: list[str]
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None
    returncode: int | None = None

    @property
    def is_finalized(self) -> bool:
        return self.ended_at is not None

    @property
    def state(self) -> RunState:
        if self.returncode is None:
            return RunState.RUNNING
        if self.returncode < 0:
            return RunState.SIGNALED
        return RunState.EXITED

    @property
    def signal_name(self) -> str | None:
        """Name of the terminating signal, e.g. ``SIGTERM``.

        Negative return codes are how asyncio reports death by signal on POSIX.
        """
        if self.returncode is None or self.returncode >= 0:
            return None
        try:
            return signal.Signals(-self.returncode).name
        except ValueError:
            return str(-self.returncode)

    @property
    def duration(self) -> float:
        end = self.ended_at or datetime.now()
        return (end - self.started_at).total_seconds()

    @property
    def duration_str(self) -> str:
        seconds = self.duration
        if seconds < 1:
            return f"{seconds * 1000:.0f}ms"
        if seconds < 60:
            return f"{seconds:.1f}s"
        minutes, secs = divmod(int(seconds), 60)
        return f"{minutes}m {secs}s"

    def finish(self, returncode: int) -> None:
        """Record the terminal outcome of the process."""
        self.returncode = returncode
        self.ended_at = datetime.now()
