"""
Ingestion pipeline: buffering, delivery strategies, retrying worker and
dead-letter storage.
"""

from .buffer import EventBuffer
from .dead_letter import (
    DeadLetterEntry,
    DeadLetterSink,
    InMemoryDeadLetterSink,
    JsonlDeadLetterSink,
    create_dead_letter_sink,
)
from .delivery import BackgroundDelivery, DeliveryStrategy, SynchronousDelivery
from .worker import DeliveryResult, DeliveryWorker, linear_delay

__all__ = [
    "EventBuffer",
    "DeliveryWorker",
    "DeliveryResult",
    "linear_delay",
    "DeliveryStrategy",
    "SynchronousDelivery",
    "BackgroundDelivery",
    "DeadLetterEntry",
    "DeadLetterSink",
    "InMemoryDeadLetterSink",
    "JsonlDeadLetterSink",
    "create_dead_letter_sink",
]
