"""
Delivery worker for the ingestion pipeline.

Takes one flushed batch, sends it through the transport and decides what to
do with every failure: drop a permanently rejected event into the dead-letter
sink, retry the batch with a growing delay, or, once the retry budget is
spent, dead-letter whatever is left.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import backoff

from ..exceptions import (
    ConfigurationError,
    DeliveryError,
    NetworkError,
    RetryableBatchError,
)
from ..types.ingestion import Envelope, IngestionResponse
from .dead_letter import DeadLetterSink

logger = logging.getLogger(__name__)


def linear_delay(step: float = 10.0) -> Iterator[Optional[float]]:
    """
    Wait generator for ``backoff``: step, 2*step, 3*step, ...

    With the default step this yields 10, 20, 30, 40, 50 seconds.
    """
    # Advance past backoff's initial .send(None)
    yield None
    attempt = 1
    while True:
        yield step * attempt
        attempt += 1


@dataclass
class DeliveryResult:
    """Outcome of processing one batch."""

    delivered: List[str] = field(default_factory=list)
    dead_lettered: List[str] = field(default_factory=list)
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return not self.dead_lettered


class _BatchState:
    """Mutable per-batch bookkeeping shared across retry attempts."""

    def __init__(self, batch: Sequence[Envelope]):
        self.pending: List[Envelope] = list(batch)
        self.result = DeliveryResult()


class DeliveryWorker:
    """
    Sends batches and classifies failures.

    - Per-event 4xx (except 429) in the response: dead-letter that event, keep the rest
    - Per-event 5xx / 429 / unknown status: retry the remaining batch
    - Network, protocol and API errors: retry the remaining batch
    - Missing credentials: give up at once
    - Retries exhausted: dead-letter the remaining batch and raise DeliveryError

    Thread Safety:
        ``process`` keeps all per-batch state local, so several delivery
        threads may share one worker.
    """

    def __init__(
        self,
        transport: Any,
        dead_letter_sink: DeadLetterSink,
        *,
        max_retries: int = 5,
        retry_base_delay: float = 10.0,
    ):
        """
        Initialize the worker.

        Args:
            transport: Object with ``send(batch) -> dict`` (HttpTransport)
            dead_letter_sink: Where permanently failed events go
            max_retries: Retries after the first failed attempt
            retry_base_delay: Delay step; retry N waits ``retry_base_delay * N``
        """
        self._transport = transport
        self._dead_letters = dead_letter_sink
        self._max_retries = max_retries
        self._retry_base_delay = retry_base_delay
        self._cancelled = threading.Event()

        self._send_with_retry = backoff.on_exception(
            linear_delay,
            Exception,
            max_tries=self._max_tries,
            giveup=self._should_give_up,
            on_backoff=self._on_backoff,
            jitter=None,
            logger=None,
            step=lambda: self._retry_base_delay,
        )(self._attempt)

    def _max_tries(self) -> int:
        return self._max_retries + 1

    def cancel(self) -> None:
        """Stop retrying; in-flight batches give up at their next failure."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def dead_letter_sink(self) -> DeadLetterSink:
        return self._dead_letters

    def process(self, batch: Sequence[Envelope]) -> DeliveryResult:
        """
        Deliver one batch.

        Args:
            batch: Non-empty sequence of envelopes

        Returns:
            DeliveryResult listing delivered and dead-lettered envelope ids

        Raises:
            DeliveryError: When the batch could not be delivered; the remaining
                events are already in the dead-letter sink
        """
        state = _BatchState(batch)
        if not state.pending:
            return state.result

        try:
            self._send_with_retry(state)
        except Exception as e:
            remaining = list(state.pending)
            message = f"Delivery failed after {state.result.attempts} attempt(s): {e}"
            logger.error(f"Giving up on batch of {len(remaining)} events: {message}")
            for envelope in remaining:
                self._dead_letters.store(envelope, message)
                state.result.dead_lettered.append(envelope.id)
            state.pending = []
            raise DeliveryError(
                message,
                event_ids=[envelope.id for envelope in remaining],
                attempts=state.result.attempts,
            ) from e

        return state.result

    def _attempt(self, state: _BatchState) -> None:
        state.result.attempts += 1
        payload = self._transport.send(state.pending)
        response = IngestionResponse.model_validate(payload or {})

        if not response.errors:
            state.result.delivered.extend(envelope.id for envelope in state.pending)
            state.pending = []
            return

        by_id: Dict[str, Envelope] = {envelope.id: envelope for envelope in state.pending}
        permanent: Dict[str, str] = {}
        transient: Dict[str, Optional[int]] = {}

        for error in response.errors:
            logger.error(f"Ingestion API error for event {error.id}: {error.describe()}")
            if error.id not in by_id:
                # Unknown or already handled id; nothing to dead-letter.
                if error.is_retryable:
                    transient[str(error.id)] = error.status
                continue
            if error.is_retryable:
                transient[error.id] = error.status
            else:
                permanent[error.id] = error.describe()

        for envelope_id, message in permanent.items():
            self._dead_letters.store(by_id[envelope_id], message)
            state.result.dead_lettered.append(envelope_id)

        state.pending = [envelope for envelope in state.pending if envelope.id not in permanent]

        if transient:
            raise RetryableBatchError(
                f"{len(transient)} event(s) failed transiently",
                statuses=transient,
            )

        state.result.delivered.extend(envelope.id for envelope in state.pending)
        state.pending = []

    def _should_give_up(self, error: Exception) -> bool:
        if self._cancelled.is_set():
            return True
        return isinstance(error, ConfigurationError)

    def _on_backoff(self, details: Dict[str, Any]) -> None:
        error = details.get("exception")
        kind = "network error" if isinstance(error, NetworkError) else "error"
        logger.warning(
            f"Ingestion attempt {details['tries']} failed with {kind}: {error}; "
            f"retrying in {details['wait']:.1f}s"
        )
