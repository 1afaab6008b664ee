"""Sliding quiet-period debouncer turning bursts of events into single triggers."""

import logging
import time
from collections.abc import Callable

from runonsave_core.models import RawEvent, Trigger

logger = logging.getLogger(__name__)


class Debouncer:
    """Debounce window with a single re-armable deadline.

    Every accepted event pushes the deadline to ``now + delay``, whatever the
    event's path or kind. A trigger is produced once the deadline passes with
    no accept in between; superseded deadlines never fire.

    The debouncer never sleeps itself. The owner waits for at most
    ``time_remaining()`` seconds and then calls ``poll_trigger()``.
    """

    def __init__(self, debounce_ms: int, clock: Callable[[], float] = time.monotonic):
        """Initialize debouncer.

        Args:
            debounce_ms: Quiet period in milliseconds (0 fires on the next poll)
            clock: Monotonic clock in seconds, injectable for tests
        """
        if debounce_ms < 0:
            raise ValueError(f"debounce_ms must not be negative, got {debounce_ms}")
        self.delay = debounce_ms / 1000.0
        self._clock = clock
        self._deadline: float | None = None
        self._pending_events = 0

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def is_armed(self) -> bool:
        return self._deadline is not None

    def accept(self, event: RawEvent | None = None) -> None:
        """Re-arm the window for an event that survived filtering."""
        self._deadline = self._clock() + self.delay
        self._pending_events += 1
        if event is not None:
            logger.debug(f"Accepted {event.kind} {event.path}")

    def time_remaining(self) -> float | None:
        """Seconds until the deadline, 0 when due, None when unarmed."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - self._clock())

    def poll_trigger(self) -> Trigger | None:
        """Return a Trigger if the quiet period has elapsed, disarming the window."""
        if self._deadline is None or self._clock() < self._deadline:
            return None
        trigger = Trigger(event_count=self._pending_events)
        self._deadline = None
        self._pending_events = 0
        logger.debug(f"Changes settled after {trigger.event_count} event(s)")
        return trigger

    def reset(self) -> None:
        """Disarm without firing."""
        self._deadline = None
        self._pending_events = 0
