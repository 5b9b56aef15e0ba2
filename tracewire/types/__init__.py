"""
Type definitions for the Tracewire SDK.
"""

from .ingestion import Envelope, EventType, IngestionError, IngestionResponse
from .records import (
    Event,
    Generation,
    Observation,
    ObservationLevel,
    Record,
    RecordModel,
    Score,
    Span,
    Trace,
    Usage,
)

__all__ = [
    # Records
    "RecordModel",
    "Record",
    "Trace",
    "Observation",
    "Span",
    "Generation",
    "Event",
    "Score",
    "Usage",
    "ObservationLevel",
    # Ingestion
    "Envelope",
    "EventType",
    "IngestionError",
    "IngestionResponse",
]
