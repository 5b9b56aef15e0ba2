"""
In-memory event buffer.

Producers append envelopes; a batch leaves the buffer when the size
threshold is reached, when the flush timer fires, or on shutdown. Leaving is
always an atomic swap of the pending list, so two drains never see the same
envelope and an envelope appended during a drain lands in the next batch.
"""

import logging
import threading
from typing import Callable, List, Optional

from ..types.ingestion import Envelope

logger = logging.getLogger(__name__)

FlushCallback = Callable[[List[Envelope]], object]

TIMER_ERROR_BACKOFF = 1.0


class EventBuffer:
    """
    Thread-safe pending-envelope list with size and time based flushing.

    Thread Safety:
        The lock guards only the append and the swap. ``on_flush`` always
        runs outside the lock, so a slow delivery never blocks producers.
    """

    def __init__(
        self,
        batch_size: int,
        on_flush: FlushCallback,
        flush_interval: Optional[float] = None,
        raise_on_threshold_flush: bool = False,
    ):
        """
        Initialize the buffer.

        Args:
            batch_size: Pending count that triggers a flush from ``enqueue``
            on_flush: Called with each non-empty drained batch
            flush_interval: Seconds between timer flushes (timer disabled if None)
            raise_on_threshold_flush: Let errors from a flush triggered by
                ``enqueue`` reach the producer instead of logging them
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self.batch_size = batch_size
        self.flush_interval = flush_interval
        self.raise_on_threshold_flush = raise_on_threshold_flush
        self._on_flush = on_flush
        self._pending: List[Envelope] = []
        self._lock = threading.Lock()

        self._timer_thread: Optional[threading.Thread] = None
        self._stop_timer = threading.Event()
        self._shutdown_requested = threading.Event()

    def enqueue(self, envelope: Envelope) -> None:
        """
        Append an envelope, flushing if the batch size is reached or the
        buffer was already closed.

        Errors from the triggered flush are logged unless
        ``raise_on_threshold_flush`` is set.
        """
        with self._lock:
            self._pending.append(envelope)
            should_flush = (
                len(self._pending) >= self.batch_size or self._shutdown_requested.is_set()
            )

        if not should_flush:
            return
        if self.raise_on_threshold_flush:
            self.flush()
            return
        try:
            self.flush()
        except Exception as e:
            logger.error(f"Flush triggered by batch size failed: {e}")

    def drain(self) -> List[Envelope]:
        """Detach and return everything pending."""
        with self._lock:
            batch = self._pending
            self._pending = []
        return batch

    def flush(self) -> int:
        """
        Drain the buffer and hand the batch to ``on_flush``.

        Returns:
            Number of envelopes handed off (0 when nothing was pending)

        Raises:
            Whatever ``on_flush`` raises
        """
        batch = self.drain()
        if not batch:
            return 0
        logger.debug(f"Flushing {len(batch)} events")
        self._on_flush(batch)
        return len(batch)

    def start_timer(self) -> None:
        """Start the periodic flush thread (no-op if already running or disabled)."""
        if self.flush_interval is None:
            return
        if self._timer_thread is not None and self._timer_thread.is_alive():
            return

        self._stop_timer.clear()
        self._timer_thread = threading.Thread(
            target=self._timer_loop,
            name="tracewire-flush-timer",
            daemon=True,
        )
        self._timer_thread.start()

    def _timer_loop(self) -> None:
        """Flush every ``flush_interval`` seconds until stopped."""
        while not self._stop_timer.wait(self.flush_interval):
            try:
                self.flush()
            except Exception as e:
                logger.error(f"Periodic flush failed: {e}")
                self._stop_timer.wait(TIMER_ERROR_BACKOFF)

    def stop_timer(self, timeout: Optional[float] = None) -> None:
        """Stop the periodic flush thread and wait for it to exit."""
        self._stop_timer.set()
        thread = self._timer_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._timer_thread = None

    @property
    def timer_running(self) -> bool:
        return self._timer_thread is not None and self._timer_thread.is_alive()

    @property
    def shutdown_requested(self) -> bool:
        return self._shutdown_requested.is_set()

    def close(self, timeout: Optional[float] = None) -> int:
        """
        Stop the timer and flush what is left.

        Args:
            timeout: Upper bound for waiting on a timer flush already in progress

        Returns:
            Number of envelopes handed off by the final flush
        """
        self._shutdown_requested.set()
        self.stop_timer(timeout)
        return self.flush()

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)
