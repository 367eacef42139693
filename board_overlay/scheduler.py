"""Periodic activities multiplexed over shared state."""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional

logger = logging.getLogger(__name__)


class PeriodicActivity:
    """Runs ``callback`` every ``interval`` seconds on its own daemon thread.

    Ticks that overrun their slot are not replayed: the next tick is scheduled
    from the time the slow one finished. An exception from the callback is
    logged and the activity keeps going; callers that need a failure to end
    the session handle it inside the callback and call ``stop``.
    """

    def __init__(self, name: str, interval: float, callback: Callable[[], None],
                 stop_event: threading.Event, initial_delay: float = 0.0):
        if interval <= 0:
            raise ValueError(f"Activity '{name}' needs a positive interval, got {interval}")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.initial_delay = initial_delay
        self._stop_event = stop_event
        self._thread: Optional[threading.Thread] = None
        self.tick_count = 0

    def start(self):
        if self._thread and self._thread.is_alive():
            logger.warning(f"Activity '{self.name}' already running")
            return
        self._thread = threading.Thread(target=self._run, name=f"activity-{self.name}", daemon=True)
        self._thread.start()

    def _run(self):
        if self.initial_delay > 0 and self._stop_event.wait(self.initial_delay):
            return

        next_due = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.callback()
            except Exception:
                logger.exception(f"Error in activity '{self.name}'")
            self.tick_count += 1

            next_due += self.interval
            now = time.monotonic()
            if next_due < now:
                next_due = now
            if self._stop_event.wait(next_due - now):
                break

    def join(self, timeout: Optional[float] = None):
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)

    def is_alive(self) -> bool:
        return bool(self._thread and self._thread.is_alive())


class ActivityScheduler:
    """Owns a set of periodic activities sharing one cancellation event."""

    def __init__(self):
        self.stop_event = threading.Event()
        self._activities: Dict[str, PeriodicActivity] = {}

    def add(self, name: str, interval: float, callback: Callable[[], None],
            initial_delay: float = 0.0) -> PeriodicActivity:
        if name in self._activities:
            raise ValueError(f"Activity '{name}' already registered")
        activity = PeriodicActivity(name, interval, callback, self.stop_event, initial_delay)
        self._activities[name] = activity
        return activity

    @property
    def activities(self) -> List[PeriodicActivity]:
        return list(self._activities.values())

    @property
    def cancelled(self) -> bool:
        return self.stop_event.is_set()

    def start(self):
        self.stop_event.clear()
        for activity in self._activities.values():
            activity.start()
        logger.info(f"Started activities: {', '.join(self._activities)}")

    def request_stop(self):
        """Signal every activity to stop without waiting (safe from inside an activity)."""
        self.stop_event.set()

    def stop(self, timeout: float = 2.0):
        self.stop_event.set()
        for activity in self._activities.values():
            activity.join(timeout=timeout)
            if activity.is_alive():
                logger.warning(f"Activity '{activity.name}' did not stop within {timeout}s")
