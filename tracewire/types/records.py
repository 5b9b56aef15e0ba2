"""
Observability record models.

Traces, spans, generations, events and scores are pydantic models with
explicit optional fields. Each record gets a stable id once, on construction,
and keeps it across updates. Records serialize to the camelCase shape the
ingestion API expects, omitting unset fields.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer
from pydantic.alias_generators import to_camel

from .._utils.serialization import to_jsonable


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision, e.g. 2024-05-01T12:00:00.123Z."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


Timestamp = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str)]


class ObservationLevel(str, Enum):
    """Severity of an observation."""

    DEBUG = "DEBUG"
    DEFAULT = "DEFAULT"
    WARNING = "WARNING"
    ERROR = "ERROR"


class RecordModel(BaseModel):
    """
    Base for all wire records.

    Unknown attributes are rejected so a typo in a keyword argument fails
    loudly at creation time instead of being dropped on the floor.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        validate_assignment=True,
        use_enum_values=True,
        protected_namespaces=(),
    )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys, dropping fields that are not set."""
        return to_jsonable(self.model_dump(by_alias=True, exclude_none=True))


class Usage(RecordModel):
    """Token usage and cost of a model call."""

    input: Optional[int] = None
    output: Optional[int] = None
    total: Optional[int] = None
    unit: Optional[str] = None
    input_cost: Optional[float] = None
    output_cost: Optional[float] = None
    total_cost: Optional[float] = None
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class Trace(RecordModel):
    """Top-level record of one logical operation."""

    id: str = Field(default_factory=new_id)
    name: Optional[str] = None
    user_id: Optional[str] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    session_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    tags: Optional[List[str]] = None
    public: Optional[bool] = None
    release: Optional[str] = None
    version: Optional[str] = None
    timestamp: Optional[Timestamp] = Field(default_factory=utc_now)
    environment: Optional[str] = None


class Observation(RecordModel):
    """Fields shared by everything nested under a trace."""

    id: str = Field(default_factory=new_id)
    trace_id: Optional[str] = None
    name: Optional[str] = None
    start_time: Optional[Timestamp] = Field(default_factory=utc_now)
    metadata: Optional[Dict[str, Any]] = None
    input: Optional[Any] = None
    output: Optional[Any] = None
    level: Optional[ObservationLevel] = None
    status_message: Optional[str] = None
    parent_observation_id: Optional[str] = None
    version: Optional[str] = None
    environment: Optional[str] = None


class Span(Observation):
    """A timed sub-operation."""

    end_time: Optional[Timestamp] = None


class Generation(Span):
    """A span describing a single model inference call."""

    completion_start_time: Optional[Timestamp] = None
    model: Optional[str] = None
    model_parameters: Optional[Dict[str, Any]] = None
    usage: Optional[Union[Usage, Dict[str, Any]]] = None
    prompt_name: Optional[str] = None
    prompt_version: Optional[int] = None


class Event(Observation):
    """A point-in-time occurrence with no duration."""


class Score(RecordModel):
    """An evaluation attached to a trace or observation."""

    id: str = Field(default_factory=new_id)
    trace_id: Optional[str] = None
    name: Optional[str] = None
    value: Optional[Union[float, str]] = None
    observation_id: Optional[str] = None
    comment: Optional[str] = None
    data_type: Optional[str] = None
    config_id: Optional[str] = None
    environment: Optional[str] = None


Record = Union[Trace, Span, Generation, Event, Score]
