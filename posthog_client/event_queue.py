"""In-memory event queue drained by a background thread.

Producers call :meth:`EventQueue.enqueue` from any thread. A single consumer
thread wakes up when the flush interval elapses, when the pending count
reaches the batch size, or when :meth:`EventQueue.flush` is called, and hands
the pending events to the batch processor in chunks of at most ``batch_size``.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Callable, Deque, Generic, List, Optional, TypeVar

from .errors import ClientClosedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

BatchProcessor = Callable[[List[T]], None]


class EventQueue(Generic[T]):
    """Thread-safe batching queue.

    Only the consumer thread removes items, so the pending counter can never
    run ahead of what is actually in the deque.
    """

    def __init__(
        self,
        batch_processor: BatchProcessor,
        max_flush_interval: float,
        batch_size: int,
        *,
        name: str = "posthog-event-queue",
    ) -> None:
        if batch_size <= 0:
            raise ValueError("Batch size must be positive")
        if max_flush_interval <= 0:
            raise ValueError("Flush interval must be positive")
        self._batch_processor = batch_processor
        self._max_flush_interval = max_flush_interval
        self._batch_size = batch_size

        self._queue: Deque[T] = deque()
        self._count = 0
        self._count_lock = threading.Lock()
        self._wakeup = threading.Event()
        self._closed = False

        self._thread = threading.Thread(target=self._consume_loop, name=name, daemon=True)
        self._thread.start()

    @property
    def closed(self) -> bool:
        return self._closed

    def enqueue(self, event: T) -> None:
        self._check_not_closed()

        self._queue.append(event)
        with self._count_lock:
            self._count += 1
            full = self._count >= self._batch_size
        if full:
            self._wakeup.set()

    def flush(self) -> None:
        """Wake the consumer to send everything pending. Does not wait for the send."""
        self._check_not_closed()

        self._wakeup.set()

    def close(self, timeout: Optional[float] = None) -> None:
        """Close the queue, send what is pending and wait for the consumer to finish.

        Args:
            timeout: Maximum seconds to wait for the final flush. ``None`` or ``0``
                waits indefinitely.
        """
        self._check_not_closed()

        self._closed = True
        self._wakeup.set()
        self._thread.join(timeout if timeout else None)
        if self._thread.is_alive():
            logger.warning("Event queue did not drain within %ss; pending events may be lost", timeout)

    def _consume_loop(self) -> None:
        while True:
            self._wakeup.wait(self._max_flush_interval)
            self._wakeup.clear()
            closed = self._closed

            with self._count_lock:
                to_process = self._count
                self._count = 0

            while to_process > 0:
                batch: List[T] = []
                while to_process > 0 and len(batch) < self._batch_size:
                    batch.append(self._queue.popleft())
                    to_process -= 1
                self._process(batch)

            if closed:
                return

    def _process(self, batch: List[T]) -> None:
        try:
            self._batch_processor(batch)
        except Exception:
            # The consumer thread must survive processor failures.
            logger.exception("Event batch processor failed; dropped %d events", len(batch))

    def _check_not_closed(self) -> None:
        if self._closed:
            raise ClientClosedError("Event queue")
