"""Event source implementation using watchdog."""

import asyncio
import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from runonsave_core.errors import WatchSourceError
from runonsave_core.models import ChangeKind, RawEvent

logger = logging.getLogger(__name__)

_EVENT_KINDS: dict[str, ChangeKind] = {
    "created": "create",
    "modified": "modify",
    "deleted": "remove",
    "moved": "rename",
}


class _QueueingHandler(FileSystemEventHandler):
    """Translates watchdog events into RawEvents on the source's queue.

    Runs on the observer thread; everything it produces crosses into the event
    loop through ``WatchdogEventSource._deliver``.
    """

    def __init__(self, source: "WatchdogEventSource"):
        self.source = source

    def on_any_event(self, event: FileSystemEvent) -> None:
        kind = _EVENT_KINDS.get(event.event_type)
        if kind is None:
            # opened/closed notifications duplicate modify events
            return

        # Directory mtime changes accompany every create/remove inside them
        if event.is_directory and kind == "modify":
            return

        path = Path(os.fsdecode(event.src_path))
        if event.is_directory and kind in ("remove", "rename") and path in self.source.roots:
            self.source._deliver(WatchSourceError(f"Watch root was removed: {path}"))
            return

        self.source._deliver(RawEvent(path=path, kind=kind, is_directory=event.is_directory))

        dest_path = getattr(event, "dest_path", "")
        if kind == "rename" and dest_path:
            dest = Path(os.fsdecode(dest_path))
            self.source._deliver(RawEvent(path=dest, kind=kind, is_directory=event.is_directory))


class WatchdogEventSource:
    """Recursive watch over one or more roots, consumed from asyncio."""

    def __init__(
        self,
        roots: Iterable[str | Path],
        loop: asyncio.AbstractEventLoop | None = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        """Initialize event source.

        Args:
            roots: Directories to watch recursively
            loop: Event loop receiving the events (defaults to the running loop at start())
            observer_factory: watchdog observer class, swappable for the polling observer
        """
        self.roots = tuple(Path(os.path.abspath(r)) for r in roots)
        self._loop = loop
        self._observer_factory = observer_factory
        self._queue: asyncio.Queue = asyncio.Queue()
        self.observer: Observer | None = None

    def start(self) -> None:
        """Schedule all roots and start the observer thread.

        Raises:
            WatchSourceError: If the platform watch cannot be established
        """
        if self._loop is None:
            self._loop = asyncio.get_running_loop()

        self.observer = self._observer_factory()
        handler = _QueueingHandler(self)
        try:
            for root in self.roots:
                self.observer.schedule(handler, str(root), recursive=True)
            self.observer.start()
        except OSError as e:
            raise WatchSourceError(f"Failed to start watching {', '.join(map(str, self.roots))}: {e}") from e

        logger.info(f"Watching {len(self.roots)} root(s): {', '.join(map(str, self.roots))}")

    def stop(self) -> None:
        """Stop the observer thread."""
        if self.observer is not None and self.observer.is_alive():
            self.observer.stop()
            self.observer.join(timeout=2.0)
            logger.info("Stopped file watcher")

    def _deliver(self, item: RawEvent | WatchSourceError) -> None:
        if self._loop is None:
            return
        try:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, item)
        except RuntimeError:
            logger.debug(f"Dropped {item!r} - event loop is closed")

    async def next_event(self) -> RawEvent:
        item = await self._queue.get()
        if isinstance(item, WatchSourceError):
            raise item
        return item

    def drain(self) -> list[RawEvent]:
        events = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return events
            if isinstance(item, WatchSourceError):
                raise item
            events.append(item)
