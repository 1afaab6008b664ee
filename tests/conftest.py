"""Pytest configuration and fixtures."""

import asyncio
import signal
import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from runonsave_core.errors import WatchSourceError  # noqa: E402
from runonsave_core.models import RawEvent  # noqa: E402


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process, finished by the test."""

    def __init__(self, pid: int):
        self.pid = pid
        self.returncode = None
        self.terminated = False
        self._done = asyncio.Event()

    async def wait(self) -> int:
        await self._done.wait()
        return self.returncode

    def finish(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self._done.set()

    def terminate(self) -> None:
        self.terminated = True
        if self.returncode is None:
            self.finish(-signal.SIGTERM)


class FakeSpawner:
    """Records spawn calls and hands out FakeProcesses."""

    def __init__(self, fail_with: Exception | None = None, auto_finish: int | None = None):
        self.fail_with = fail_with
        self.auto_finish = auto_finish
        self.calls: list[list[str]] = []
        self.processes: list[FakeProcess] = []

    async def __call__(self, *argv: str) -> FakeProcess:
        self.calls.append(list(argv))
        if self.fail_with is not None:
            raise self.fail_with
        process = FakeProcess(pid=1000 + len(self.processes))
        self.processes.append(process)
        if self.auto_finish is not None:
            process.finish(self.auto_finish)
        return process

    @property
    def current(self) -> FakeProcess:
        return self.processes[-1]


class FakeEventSource:
    """In-memory event source fed by the test."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.started = False
        self.stopped = False

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def emit(self, path, kind: str = "modify", is_directory: bool = False) -> None:
        self.queue.put_nowait(RawEvent(path=Path(path), kind=kind, is_directory=is_directory))

    def fail(self, error: WatchSourceError) -> None:
        self.queue.put_nowait(error)

    async def next_event(self) -> RawEvent:
        item = await self.queue.get()
        if isinstance(item, WatchSourceError):
            raise item
        return item

    def drain(self) -> list[RawEvent]:
        events = []
        while not self.queue.empty():
            item = self.queue.get_nowait()
            if isinstance(item, WatchSourceError):
                raise item
            events.append(item)
        return events


class RecordingNotifier:
    """Notifier collecting messages per level."""

    def __init__(self):
        self.infos: list[str] = []
        self.warnings: list[str] = []
        self.errors: list[str] = []

    def info(self, msg: str) -> None:
        self.infos.append(msg)

    def warning(self, msg: str) -> None:
        self.warnings.append(msg)

    def error(self, msg: str) -> None:
        self.errors.append(msg)


async def settle(rounds: int = 20) -> None:
    """Let pending callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier():
    return RecordingNotifier()
