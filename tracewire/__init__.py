"""
Tracewire SDK - client-side telemetry for LLM applications.

Records (traces, spans, generations, events and scores) are buffered in
memory and delivered in batches to the ingestion API, with retries and a
dead-letter sink for events that cannot be delivered.

Basic Usage:
    >>> from tracewire import Tracewire
    >>> client = Tracewire(public_key="pk-...", secret_key="sk-...")
    >>> trace = client.trace(name="chat", user_id="user-1")
    >>> client.generation(trace_id=trace.id, name="answer", model="gpt-4o")
    >>> client.shutdown()

Scoped Helpers:
    >>> from tracewire import trace_scope, span_scope
    >>> with trace_scope(client, "chat") as trace:
    ...     with span_scope(client, "retrieve") as span:
    ...         span.output = retrieve()
"""

import logging

from . import context
from ._ingestion import (
    DeadLetterEntry,
    DeadLetterSink,
    InMemoryDeadLetterSink,
    JsonlDeadLetterSink,
)
from ._utils.logging import LOGGER_NAME, enable_debug_logging
from .client import Tracewire
from .config import TracewireConfig
from .context import ContextFrame, with_span, with_trace
from .exceptions import (
    ApiError,
    ConfigurationError,
    DeliveryError,
    NetworkError,
    PreconditionError,
    ResponseParseError,
    RetryableBatchError,
    TracewireError,
    TransportError,
)
from .helpers import generation_scope, observe, score_trace, span_scope, trace_scope
from .types import (
    Envelope,
    Event,
    EventType,
    Generation,
    ObservationLevel,
    Score,
    Span,
    Trace,
    Usage,
)
from .version import __version__, __version_info__

logging.getLogger(LOGGER_NAME).addHandler(logging.NullHandler())

__all__ = [
    # Version
    "__version__",
    "__version_info__",
    # Core classes
    "Tracewire",
    "TracewireConfig",
    # Records
    "Trace",
    "Span",
    "Generation",
    "Event",
    "Score",
    "Usage",
    "ObservationLevel",
    "Envelope",
    "EventType",
    # Context
    "context",
    "ContextFrame",
    "with_trace",
    "with_span",
    # Helpers
    "trace_scope",
    "span_scope",
    "generation_scope",
    "score_trace",
    "observe",
    # Dead letters
    "DeadLetterEntry",
    "DeadLetterSink",
    "InMemoryDeadLetterSink",
    "JsonlDeadLetterSink",
    # Logging
    "enable_debug_logging",
    # Exceptions
    "TracewireError",
    "PreconditionError",
    "ConfigurationError",
    "TransportError",
    "NetworkError",
    "ApiError",
    "ResponseParseError",
    "RetryableBatchError",
    "DeliveryError",
]
