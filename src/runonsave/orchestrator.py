"""Watch loop wiring the event source, filters, debouncer and run controller. Primary embed point."""

import asyncio
import logging
import signal
import time
from collections.abc import Callable

from runonsave_core.config import WatchConfig
from runonsave_core.debounce import Debouncer
from runonsave_core.file_watcher import WatchdogEventSource
from runonsave_core.ignore import PatternFilter, build_ignore_filter
from runonsave_core.models import RawEvent
from runonsave_core.notifier import NoOpNotifier, RunOnSaveNotifier
from runonsave_core.runner import RunController
from runonsave_core.watchers import EventSource

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs the watch loop until a shutdown request.

    The loop is a single multiplexed wait over the next raw event and the
    shutdown request, with the debounce deadline as its timeout. Process
    completion is handled by the run controller's reaper task on the same
    event loop.

    Usage (Embedded):
        orchestrator = Orchestrator(config)
        task = asyncio.create_task(orchestrator.run())
        ...
        orchestrator.request_stop()
        await task
    """

    def __init__(
        self,
        config: WatchConfig,
        notifier: RunOnSaveNotifier | None = None,
        source: EventSource | None = None,
        controller: RunController | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize orchestrator.

        Ignore files are loaded here so that a malformed one fails before the
        watch loop starts.

        Args:
            config: Validated watch configuration
            notifier: Optional notification handler (defaults to NoOpNotifier - silent)
            source: Event source (defaults to a watchdog source over config.paths)
            controller: Run controller (defaults to one built from config)
            clock: Monotonic clock for the debouncer

        Raises:
            IgnoreFileError: If an ignore file is malformed
            ConfigurationError: If an include pattern is malformed
        """
        self.config = config
        self.notifier = notifier or NoOpNotifier()

        self.ignore_filter = build_ignore_filter(config.paths, config.use_ignore_files)
        self.pattern_filter = PatternFilter(config.paths, config.patterns) if config.patterns else None

        self.debouncer = Debouncer(config.debounce_ms, clock=clock)
        self.source: EventSource = source or WatchdogEventSource(config.paths)
        self.controller = controller or RunController(
            config.argv,
            notifier=self.notifier,
            on_busy=config.on_busy,
        )

        self._stop_requested = asyncio.Event()
        self.events_seen = 0
        self.events_ignored = 0
        self.triggers_fired = 0

    def qualifies(self, event: RawEvent) -> bool:
        """Check an event against the ignore rules and include patterns."""
        if self.ignore_filter.is_ignored(event.path, event.is_directory):
            return False
        if self.pattern_filter is not None and not self.pattern_filter.matches(event.path):
            return False
        return True

    def _handle_event(self, event: RawEvent) -> None:
        self.events_seen += 1
        if self.qualifies(event):
            self.debouncer.accept(event)
        else:
            self.events_ignored += 1
            logger.debug(f"Ignored {event.kind} {event.path}")

    def request_stop(self) -> None:
        """Ask the loop to shut down. A second request terminates a command still running."""
        if self._stop_requested.is_set():
            if self.controller.terminate():
                self.notifier.info("Terminating running command")
            return
        logger.debug("Shutdown requested")
        self._stop_requested.set()

    async def run(self) -> None:
        """Run the watch loop until ``request_stop()``.

        Raises:
            WatchSourceError: If the event source fails
        """
        self.source.start()
        self.notifier.info(
            f"Watching {', '.join(str(p) for p in self.config.paths)} "
            f"(debounce: {self.config.debounce_ms}ms), running: {self.controller.command_line}"
        )

        next_event = asyncio.ensure_future(self.source.next_event())
        stop = asyncio.ensure_future(self._stop_requested.wait())
        try:
            while True:
                done, _ = await asyncio.wait(
                    {next_event, stop},
                    timeout=self.debouncer.time_remaining(),
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if stop in done:
                    break

                if next_event in done:
                    self._handle_event(next_event.result())
                    # Whole bursts are accepted before the deadline is checked
                    for event in self.source.drain():
                        self._handle_event(event)
                    next_event = asyncio.ensure_future(self.source.next_event())

                trigger = self.debouncer.poll_trigger()
                if trigger is not None:
                    self.triggers_fired += 1
                    await self.controller.trigger()
        finally:
            next_event.cancel()
            stop.cancel()
            self.source.stop()
            await self.controller.shutdown(terminate=self.config.kill_on_exit)
            logger.info(f"Watch loop stopped after {self.triggers_fired} trigger(s)")


async def serve(orchestrator: Orchestrator) -> None:
    """Run an orchestrator with SIGINT/SIGTERM wired to ``request_stop()``."""
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.request_stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows or not the main thread: fall back to KeyboardInterrupt
            logger.debug(f"Cannot install handler for {sig.name}")
    try:
        await orchestrator.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
