"""Abstract event source protocol for file watching implementations."""

from typing import Protocol

from runonsave_core.models import RawEvent


class EventSource(Protocol):
    """Protocol for raw file system event sources.

    The sequence of events is unbounded: ``next_event()`` keeps producing until
    ``stop()`` is called. Failures of the underlying mechanism are raised from
    ``next_event()`` as ``WatchSourceError``.
    """

    def start(self) -> None:
        """Start watching."""
        ...

    def stop(self) -> None:
        """Stop watching."""
        ...

    async def next_event(self) -> RawEvent:
        """Wait for the next raw event."""
        ...

    def drain(self) -> list[RawEvent]:
        """Return every event already delivered, without waiting."""
        ...
