"""
Delivery strategies.

A strategy decides where ``DeliveryWorker.process`` runs. It is picked once,
when the client is built:

- SynchronousDelivery: inline, on the thread that flushed; failures reach the caller
- BackgroundDelivery: a bounded queue drained by daemon worker threads;
  failures are logged and dead-lettered, never raised to producers
"""

import logging
import queue
import threading
import time
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..types.ingestion import Envelope
from .dead_letter import DeadLetterSink
from .worker import DeliveryResult, DeliveryWorker

logger = logging.getLogger(__name__)


class DeliveryStrategy(ABC):
    """Interface shared by both strategies."""

    #: Whether delivery errors reach the thread that flushed
    propagates_errors = False

    def __init__(self, worker: DeliveryWorker):
        self.worker = worker

    def start(self) -> None:
        """Start any background resources."""

    @abstractmethod
    def submit(self, batch: Sequence[Envelope]) -> Optional[DeliveryResult]:
        """Deliver or queue one drained batch."""
        pass

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """Release resources; returns False if work was abandoned."""
        return True


class SynchronousDelivery(DeliveryStrategy):
    """Deliver on the calling thread and let errors propagate."""

    propagates_errors = True

    def __init__(self, worker: DeliveryWorker):
        super().__init__(worker)
        self._closed = threading.Event()

    def submit(self, batch: Sequence[Envelope]) -> Optional[DeliveryResult]:
        if not batch:
            return None
        if self._closed.is_set():
            logger.error(f"Delivery was already shut down; dead-lettering batch of {len(batch)} events")
            for envelope in batch:
                self.worker.dead_letter_sink.store(envelope, "Delivery was already shut down")
            return None
        return self.worker.process(batch)

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        self._closed.set()
        return True


class BackgroundDelivery(DeliveryStrategy):
    """
    Queue-backed delivery on daemon threads.

    Thread Safety:
        submit() is safe to call from any thread. Batches handed to different
        workers may reach the API in any order.
    """

    _POLL_INTERVAL = 0.5

    def __init__(
        self,
        worker: DeliveryWorker,
        dead_letter_sink: DeadLetterSink,
        *,
        max_workers: int = 2,
        max_queue_size: int = 1000,
    ):
        super().__init__(worker)
        self._dead_letters = dead_letter_sink
        self._max_workers = max_workers
        self._queue: "queue.Queue[List[Envelope]]" = queue.Queue(maxsize=max_queue_size)
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._accepting = False
        self._stopping = threading.Event()
        self._abandoned = threading.Event()

    def start(self) -> None:
        """Start background worker threads."""
        with self._lock:
            if self._accepting:
                return
            self._accepting = True
            self._stopping.clear()
            self._abandoned.clear()
            for index in range(self._max_workers):
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"tracewire-delivery-{index}",
                    daemon=True,
                )
                thread.start()
                self._threads.append(thread)

    def submit(self, batch: Sequence[Envelope]) -> Optional[DeliveryResult]:
        """Queue a batch for delivery; never blocks and never raises delivery errors."""
        if not batch:
            return None

        items = list(batch)
        with self._lock:
            if self._accepting:
                try:
                    self._queue.put_nowait(items)
                    return None
                except queue.Full:
                    reason = "Delivery queue full"
            else:
                reason = "Delivery was already shut down"

        logger.error(f"{reason}; dead-lettering batch of {len(items)} events")
        self._dead_letter(items, reason)
        return None

    def _worker_loop(self) -> None:
        """Background worker loop."""
        logger.debug("Delivery worker started")

        while True:
            try:
                batch = self._queue.get(timeout=self._POLL_INTERVAL)
            except queue.Empty:
                if self._stopping.is_set():
                    break
                continue

            try:
                if self._abandoned.is_set():
                    self._dead_letter(batch, "Shutdown timeout exceeded before delivery")
                    continue
                self.worker.process(batch)
            except Exception as e:
                # Already dead-lettered by the worker; keep the thread alive.
                logger.error(f"Background delivery failed: {e}")
            finally:
                self._queue.task_done()

        logger.debug("Delivery worker stopped")

    def _dead_letter(self, batch: Sequence[Envelope], error: str) -> None:
        for envelope in batch:
            self._dead_letters.store(envelope, error)

    @property
    def pending(self) -> int:
        """Approximate number of queued batches."""
        return self._queue.qsize()

    def shutdown(self, timeout: Optional[float] = None) -> bool:
        """
        Stop accepting batches and wait for queued ones.

        Waits at most ``timeout`` seconds. Batches still queued at the deadline
        are dead-lettered and running retries are cancelled.

        Returns:
            True if everything finished in time
        """
        with self._lock:
            if not self._accepting:
                return True
            self._accepting = False
            threads = list(self._threads)
            self._threads = []
            self._stopping.set()

        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)

        alive = [thread for thread in threads if thread.is_alive()]
        if not alive:
            return True

        logger.warning(
            f"Delivery did not finish within {timeout}s; "
            f"abandoning {self._queue.qsize()} queued item(s)"
        )
        self._abandoned.set()
        self.worker.cancel()
        self._drain_abandoned()
        return False

    def _drain_abandoned(self) -> None:
        while True:
            try:
                batch = self._queue.get_nowait()
            except queue.Empty:
                return
            try:
                self._dead_letter(batch, "Shutdown timeout exceeded before delivery")
            finally:
                self._queue.task_done()
