"""
Tracewire client.

The client is the entry point applications use to emit traces, spans,
generations, events and scores. Records are wrapped in ingestion envelopes,
buffered in memory and delivered in batches by the configured delivery
strategy.
"""

import atexit
import logging
import threading
import time
from typing import Any, ContextManager, Dict, Optional, Type, TypeVar

from pydantic import ValidationError

from . import context
from ._http import HttpTransport
from ._ingestion import (
    BackgroundDelivery,
    DeadLetterSink,
    DeliveryStrategy,
    DeliveryWorker,
    EventBuffer,
    SynchronousDelivery,
    create_dead_letter_sink,
)
from ._utils.logging import enable_debug_logging
from .config import TracewireConfig
from .exceptions import ConfigurationError, PreconditionError
from .types import Envelope, EventType, Event, Generation, RecordModel, Score, Span, Trace

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=RecordModel)


class Tracewire:
    """
    Main Tracewire client.

    Example:
        >>> client = Tracewire(public_key="pk-...", secret_key="sk-...")
        >>> trace = client.trace(name="checkout", user_id="user-1")
        >>> span = client.span(trace_id=trace.id, name="lookup")
        >>> client.update_span(span)
        >>> client.shutdown()

    Thread Safety:
        Record methods may be called from any thread or asyncio task.

    In synchronous delivery mode a record method whose event fills the batch
    delivers it inline and raises DeliveryError if that fails.
    """

    def __init__(
        self,
        config: Optional[TracewireConfig] = None,
        *,
        transport: Any = None,
        delivery: Optional[DeliveryStrategy] = None,
        dead_letter_sink: Optional[DeadLetterSink] = None,
        **overrides: Any,
    ):
        """
        Initialize the client and start its background resources.

        Args:
            config: Pre-built TracewireConfig (environment is not read)
            transport: Object with ``send(batch)``; defaults to HttpTransport
            delivery: Delivery strategy; defaults to one built from config
            dead_letter_sink: Where undeliverable events go
            **overrides: Config fields, taking precedence over TRACEWIRE_* env vars
        """
        if config is not None and overrides:
            raise ConfigurationError(
                "Pass either a config object or keyword overrides, not both"
            )
        self.config = config if config is not None else TracewireConfig.from_env(**overrides)

        if self.config.debug:
            enable_debug_logging()

        self._dead_letters = (
            dead_letter_sink
            if dead_letter_sink is not None
            else create_dead_letter_sink(self.config.dead_letter_path)
        )
        self._transport = transport if transport is not None else HttpTransport(self.config)
        self._delivery = delivery if delivery is not None else self._build_delivery()

        self._buffer = EventBuffer(
            batch_size=self.config.batch_size,
            on_flush=self._delivery.submit,
            flush_interval=self.config.flush_interval,
            raise_on_threshold_flush=self._delivery.propagates_errors,
        )

        self._lifecycle_lock = threading.Lock()
        self._started = False
        self._is_shutdown = False
        self._atexit_registered = False

        self.start()

    def _build_delivery(self) -> DeliveryStrategy:
        worker = DeliveryWorker(
            self._transport,
            self._dead_letters,
            max_retries=self.config.max_retries,
            retry_base_delay=self.config.retry_base_delay,
        )
        if self.config.background_delivery:
            return BackgroundDelivery(
                worker,
                self._dead_letters,
                max_workers=self.config.max_workers,
                max_queue_size=self.config.max_queue_size,
            )
        return SynchronousDelivery(worker)

    def start(self) -> None:
        """Start delivery workers, the flush timer and the exit hook."""
        with self._lifecycle_lock:
            if self._started or self._is_shutdown:
                return
            self._started = True

        self._delivery.start()
        self._buffer.start_timer()

        if not self.config.disable_at_exit_hook:
            atexit.register(self._at_exit)
            self._atexit_registered = True

        logger.debug(f"Tracewire client started: {self.config!r}")

    # ========== Records ==========

    def trace(self, **attributes: Any) -> Trace:
        """
        Create a trace.

        Args:
            **attributes: Trace fields (name, user_id, input, metadata, ...)

        Returns:
            The Trace, with its generated id
        """
        trace = self._build(Trace, attributes, "trace")
        self._enqueue(EventType.TRACE_CREATE, trace)
        return trace

    def span(self, **attributes: Any) -> Span:
        """
        Create a span within a trace.

        Raises:
            PreconditionError: If ``trace_id`` is missing
        """
        self._require(attributes, "trace_id", "span")
        span = self._build(Span, attributes, "span")
        self._enqueue(EventType.SPAN_CREATE, span)
        return span

    def update_span(self, span: Span) -> Span:
        """
        Send the current state of an existing span.

        Raises:
            PreconditionError: If the span has no ``id`` or ``trace_id``
        """
        self._require_identity(span, "update_span")
        self._enqueue(EventType.SPAN_UPDATE, span)
        return span

    def generation(self, **attributes: Any) -> Generation:
        """
        Create a generation within a trace.

        Raises:
            PreconditionError: If ``trace_id`` is missing
        """
        self._require(attributes, "trace_id", "generation")
        generation = self._build(Generation, attributes, "generation")
        self._enqueue(EventType.GENERATION_CREATE, generation)
        return generation

    def update_generation(self, generation: Generation) -> Generation:
        """
        Send the current state of an existing generation.

        Raises:
            PreconditionError: If the generation has no ``id`` or ``trace_id``
        """
        self._require_identity(generation, "update_generation")
        self._enqueue(EventType.GENERATION_UPDATE, generation)
        return generation

    def event(self, **attributes: Any) -> Event:
        """Create a point-in-time event within a trace."""
        self._require(attributes, "trace_id", "event")
        event = self._build(Event, attributes, "event")
        self._enqueue(EventType.EVENT_CREATE, event)
        return event

    def score(self, **attributes: Any) -> Score:
        """Attach a score to a trace (and optionally an observation)."""
        self._require(attributes, "trace_id", "score")
        score = self._build(Score, attributes, "score")
        self._enqueue(EventType.SCORE_CREATE, score)
        return score

    @staticmethod
    def _require(attributes: Dict[str, Any], field: str, operation: str) -> None:
        if not attributes.get(field):
            raise PreconditionError.missing_field(field, operation)

    @staticmethod
    def _require_identity(record: RecordModel, operation: str) -> None:
        for field in ("id", "trace_id"):
            if not getattr(record, field, None):
                raise PreconditionError.missing_field(field, operation)

    @staticmethod
    def _build(model: Type[R], attributes: Dict[str, Any], operation: str) -> R:
        try:
            return model(**attributes)
        except ValidationError as e:
            raise PreconditionError(
                f"Invalid attributes for {operation}: {e}",
                details={"errors": e.errors(include_url=False)},
            ) from e

    def _enqueue(self, event_type: EventType, record: RecordModel) -> None:
        envelope = Envelope(type=event_type, body=record)
        logger.debug(f"Enqueued {event_type.value} event {envelope.id} (body {record.id})")
        self._buffer.enqueue(envelope)

    # ========== Delivery ==========

    def flush(self) -> int:
        """
        Hand everything buffered to delivery now.

        Returns:
            Number of events handed off (0 when the buffer was empty)

        Raises:
            DeliveryError: In synchronous delivery mode, when the batch could
                not be delivered (its events are already dead-lettered)
        """
        return self._buffer.flush()

    def shutdown(self) -> bool:
        """
        Stop the flush timer, flush what is buffered and wait for delivery.

        Waits at most ``config.shutdown_timeout`` seconds in total for the final
        flush and for delivery; batches still queued after that are
        dead-lettered and running retries are cancelled. Safe to call more than
        once. Never raises.

        Returns:
            True if everything buffered was handed off and delivery finished in time
        """
        with self._lifecycle_lock:
            if self._is_shutdown:
                return True
            self._is_shutdown = True

        logger.debug("Shutting down Tracewire client...")
        timeout = self.config.shutdown_timeout
        deadline = time.monotonic() + timeout
        completed = self._final_flush(timeout)

        try:
            remaining = max(0.0, deadline - time.monotonic())
            if not self._delivery.shutdown(remaining):
                completed = False
        except Exception as e:
            logger.error(f"Error while stopping delivery: {e}")
            completed = False
        finally:
            close = getattr(self._transport, "close", None)
            if close is not None:
                close()

        if self._atexit_registered:
            atexit.unregister(self._at_exit)
            self._atexit_registered = False

        logger.debug("Tracewire client shut down.")
        return completed

    def _final_flush(self, timeout: float) -> bool:
        """
        Close the buffer on a helper thread and wait at most ``timeout`` for it.

        In synchronous mode the flush runs the whole retry loop; if it is still
        running at the deadline its retries are cancelled, so the batch ends up
        in the dead-letter sink at its next failure.
        """
        errors = []

        def run() -> None:
            try:
                self._buffer.close(timeout)
            except Exception as e:
                errors.append(e)

        thread = threading.Thread(target=run, name="tracewire-final-flush", daemon=True)
        thread.start()
        thread.join(timeout)

        if thread.is_alive():
            logger.warning(
                f"Final flush did not finish within {timeout}s; cancelling remaining retries"
            )
            self._delivery.worker.cancel()
            return False
        if errors:
            logger.error(f"Final flush failed: {errors[0]}")
            return False
        return True

    def _at_exit(self) -> None:
        """Cleanup handler called on process exit."""
        self.shutdown()

    def close(self) -> bool:
        """Alias for shutdown()."""
        return self.shutdown()

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    @property
    def pending_count(self) -> int:
        """Number of events waiting in the buffer."""
        return len(self._buffer)

    @property
    def dead_letters(self) -> DeadLetterSink:
        """Sink holding events that could not be delivered."""
        return self._dead_letters

    # ========== Context ==========

    def with_trace_context(self, trace: Any) -> ContextManager[context.ContextFrame]:
        """Make ``trace`` the current trace for a ``with`` block."""
        return context.with_trace(trace)

    def with_span_context(self, span: Any) -> ContextManager[context.ContextFrame]:
        """Make ``span`` the current span for a ``with`` block."""
        return context.with_span(span)

    def __enter__(self) -> "Tracewire":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return (
            f"Tracewire(host='{self.config.host}', "
            f"background_delivery={self.config.background_delivery}, "
            f"pending={self.pending_count})"
        )
