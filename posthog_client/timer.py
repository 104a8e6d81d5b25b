from __future__ import annotations

import logging
import threading
from typing import Callable

from .errors import ClientClosedError

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs a task on a daemon thread right away and then every ``interval`` seconds.

    Used to keep local feature flag definitions fresh. :meth:`wakeup` runs the
    task immediately and restarts the interval.
    """

    def __init__(self, task: Callable[[], None], interval: float, *, name: str = "posthog-periodic-task") -> None:
        """
        Initialize and start the periodic task.

        Args:
            task: Callable to run. Exceptions are logged and do not stop the loop.
            interval: Seconds between two runs.
            name: Thread name, shows up in thread dumps.
        """
        if interval <= 0:
            raise ValueError("Interval must be positive")
        self._task = task
        self._interval = interval
        self._name = name
        self._wakeup = threading.Event()
        self._closed = False

        self._thread = threading.Thread(target=self._run_loop, name=name, daemon=True)
        self._thread.start()

    @property
    def closed(self) -> bool:
        return self._closed

    def wakeup(self) -> None:
        """Run the task now and requeue it."""
        self._check_not_closed()

        self._wakeup.set()

    def close(self) -> None:
        """Stop the loop. Does not wait for a running task to finish."""
        self._check_not_closed()

        self._closed = True
        self._wakeup.set()

    def _run_loop(self) -> None:
        while not self._closed:
            try:
                self._task()
            except Exception:
                logger.exception("Periodic task %s failed", self._name)

            self._wakeup.wait(self._interval)
            self._wakeup.clear()

    def _check_not_closed(self) -> None:
        if self._closed:
            raise ClientClosedError("Periodic task")
