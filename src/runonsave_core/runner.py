"""Run controller: spawns the command and sequences re-runs.

At most one invocation is live at a time. A trigger that arrives while the
command is running sets a boolean pending flag; the reaper task starts exactly
one new invocation once the current one has exited. With the ``restart`` busy
policy the running command is additionally asked to terminate.

The pending flag and the active handle are only touched while holding
``self._lock``, which serializes the trigger path and the completion path.
"""

import asyncio
import logging
import shlex
from collections import deque
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from runonsave_core.errors import SpawnError
from runonsave_core.models import BusyPolicy, RunHandle, RunState
from runonsave_core.notifier import NoOpNotifier, RunOnSaveNotifier

logger = logging.getLogger(__name__)

Spawner = Callable[..., Awaitable[Any]]
"""Coroutine factory with the signature of ``asyncio.create_subprocess_exec``."""


class RunController:
    """Owns the lifecycle of the configured command."""

    def __init__(
        self,
        argv: Sequence[str],
        notifier: RunOnSaveNotifier | None = None,
        on_busy: BusyPolicy = "queue",
        spawn: Spawner | None = None,
        history_size: int = 20,
    ):
        """Initialize controller.

        Args:
            argv: Command and arguments
            notifier: Optional notification handler (defaults to NoOpNotifier - silent)
            on_busy: "queue" to re-run after the current run, "restart" to terminate it first
            spawn: Process factory, defaults to asyncio.create_subprocess_exec
            history_size: Number of finished RunHandles kept in ``history``
        """
        if not argv:
            raise ValueError("argv must contain at least the command")
        self.argv = list(argv)
        self.notifier = notifier or NoOpNotifier()
        self.on_busy = on_busy
        self._spawn = spawn or asyncio.create_subprocess_exec

        self._lock = asyncio.Lock()
        self._idle = asyncio.Event()
        self._idle.set()
        self._process: Any = None
        self._reaper: asyncio.Task | None = None
        self._closing = False

        self.handle: RunHandle | None = None
        self.pending = False
        self.run_count = 0
        self.spawn_failures = 0
        self.history: deque[RunHandle] = deque(maxlen=history_size)

    @property
    def is_running(self) -> bool:
        return self.handle is not None

    @property
    def last_run(self) -> RunHandle | None:
        return self.history[-1] if self.history else None

    @property
    def command_line(self) -> str:
        return shlex.join(self.argv)

    async def trigger(self) -> RunHandle | None:
        """Consume one trigger.

        Returns:
            The RunHandle if a new invocation was started, None if the trigger
            was recorded as a pending re-run or the spawn failed
        """
        async with self._lock:
            if self._closing:
                logger.debug("Trigger ignored - controller is shutting down")
                return None

            if self.handle is not None:
                if not self.pending:
                    logger.debug(f"Command still running (pid {self.handle.pid}), re-run queued")
                self.pending = True
                if self.on_busy == "restart":
                    self._terminate_locked()
                return None

            return await self._start_locked()

    async def _start_locked(self) -> RunHandle | None:
        try:
            process = await self._spawn_process()
        except SpawnError as e:
            self.spawn_failures += 1
            logger.error(str(e))
            self.notifier.error(str(e))
            return None

        handle = RunHandle(pid=process.pid, argv=list(self.argv))
        self.handle = handle
        self._process = process
        self.run_count += 1
        self._idle.clear()
        self._reaper = asyncio.create_task(self._reap(process, handle))
        logger.info(f"Started: {self.command_line} (pid {handle.pid})")
        return handle

    async def _spawn_process(self) -> Any:
        # stdin/stdout/stderr are left as None so the child inherits ours
        try:
            return await self._spawn(*self.argv)
        except (OSError, ValueError) as e:
            # ValueError: argv rejected before exec, e.g. an embedded null byte
            raise SpawnError(self.argv, e) from e

    async def _reap(self, process: Any, handle: RunHandle) -> None:
        returncode = await process.wait()
        async with self._lock:
            handle.finish(returncode)
            self.history.append(handle)
            self.handle = None
            self._process = None
            self._report(handle)

            if self.pending and not self._closing:
                self.pending = False
                await self._start_locked()

            if self.handle is None:
                self._idle.set()

    def _report(self, handle: RunHandle) -> None:
        if handle.state is RunState.SIGNALED:
            self.notifier.warning(f"Command terminated by signal {handle.signal_name}")
        elif handle.returncode:
            self.notifier.warning(f"Command exited with code {handle.returncode}")
        logger.info(f"Finished: pid {handle.pid} -> {handle.returncode} ({handle.duration_str})")

    def _terminate_locked(self) -> bool:
        process = self._process
        if process is None or process.returncode is not None:
            return False
        try:
            process.terminate()
        except ProcessLookupError:
            return False
        logger.debug(f"Sent terminate to pid {process.pid}")
        return True

    def terminate(self) -> bool:
        """Ask the running command to terminate. Returns False if nothing was running."""
        return self._terminate_locked()

    async def wait_idle(self) -> None:
        """Wait until no invocation is running and no re-run is pending."""
        await self._idle.wait()

    async def shutdown(self, terminate: bool = False) -> None:
        """Stop sequencing runs, then wait for the running command (if any).

        Args:
            terminate: Send a terminate request instead of letting it finish
        """
        async with self._lock:
            self._closing = True
            self.pending = False
            handle = self.handle
            if handle is None:
                return
            if terminate:
                self.notifier.info(f"Stopping running command (pid {handle.pid})")
                self._terminate_locked()
            else:
                self.notifier.info(f"Waiting for running command (pid {handle.pid}) to finish")

        await self.wait_idle()
