"""
Batch ingestion API types.

Every record travels inside an envelope that carries its own id, the kind of
operation and the time it was enqueued. Responses may report per-event
failures; their status is normalized to an int here so the delivery worker
never has to care whether the server sent ``404`` or ``"404"``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .records import RecordModel, Timestamp, format_timestamp, new_id, utc_now


class EventType(str, Enum):
    """Envelope types accepted by the ingestion endpoint."""

    TRACE_CREATE = "trace-create"
    SPAN_CREATE = "span-create"
    SPAN_UPDATE = "span-update"
    GENERATION_CREATE = "generation-create"
    GENERATION_UPDATE = "generation-update"
    EVENT_CREATE = "event-create"
    SCORE_CREATE = "score-create"


class Envelope(BaseModel):
    """
    Ingestion envelope.

    Attributes:
        id: Unique envelope id, generated at enqueue time
        type: Kind of operation carried by the envelope
        timestamp: When the envelope was created
        body: The record being created or updated
        metadata: Optional envelope-level metadata
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    type: EventType
    timestamp: Timestamp = Field(default_factory=utc_now)
    body: RecordModel
    metadata: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation of the envelope."""
        data: Dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "timestamp": format_timestamp(self.timestamp),
            "body": self.body.to_dict(),
        }
        if self.metadata is not None:
            data["metadata"] = self.metadata
        return data


class IngestionError(BaseModel):
    """
    Failure reported for a single envelope.

    Attributes:
        id: Envelope id the error refers to
        status: HTTP-like status for this envelope, None when absent or unparseable
        message: Human readable message
        error: Raw error payload, if any
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    status: Optional[int] = None
    message: Optional[str] = None
    error: Optional[Any] = None

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Optional[int]:
        if value is None or isinstance(value, bool):
            return None
        try:
            return int(str(value).strip())
        except ValueError:
            return None

    @property
    def is_retryable(self) -> bool:
        """4xx other than 429 is permanent; everything else may succeed later."""
        if self.status is None:
            return True
        return not (400 <= self.status < 500 and self.status != 429)

    def describe(self) -> str:
        if self.message:
            return self.message
        if self.error is not None:
            return str(self.error)
        return f"status {self.status}"


class IngestionResponse(BaseModel):
    """Parsed body of a 2xx / 207 ingestion response."""

    model_config = ConfigDict(extra="allow")

    successes: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[IngestionError] = Field(default_factory=list)

    @field_validator("successes", "errors", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


__all__ = [
    "EventType",
    "Envelope",
    "IngestionError",
    "IngestionResponse",
]
