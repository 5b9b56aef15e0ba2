"""Tests for record, envelope and response models."""

import re
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from tracewire.types import (
    Envelope,
    EventType,
    Generation,
    IngestionResponse,
    ObservationLevel,
    Score,
    Span,
    Trace,
    Usage,
)
from tracewire.types.records import format_timestamp

ISO_MILLIS = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$")


class TestRecords:
    """Record construction and serialization."""

    def test_id_generated_once(self):
        trace = Trace(name="t")

        assert uuid.UUID(trace.id).version == 4
        trace.output = "done"
        assert trace.to_dict()["id"] == trace.id

    def test_camel_case_and_none_omitted(self):
        span = Span(trace_id="t-1", name="lookup", parent_observation_id="s-0", status_message=None)

        data = span.to_dict()
        assert data["traceId"] == "t-1"
        assert data["parentObservationId"] == "s-0"
        assert "statusMessage" not in data
        assert "endTime" not in data
        assert "trace_id" not in data

    def test_unknown_attribute_rejected(self):
        with pytest.raises(ValidationError):
            Trace(name="t", colour="blue")

    def test_timestamps_have_millisecond_precision(self):
        start = datetime(2024, 5, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        span = Span(trace_id="t-1", start_time=start, end_time=start + timedelta(seconds=1))

        data = span.to_dict()
        assert data["startTime"] == "2024-05-01T12:00:00.123Z"
        assert data["endTime"] == "2024-05-01T12:00:01.123Z"
        assert ISO_MILLIS.match(Trace().to_dict()["timestamp"])

    def test_naive_and_offset_datetimes_normalized_to_utc(self):
        naive = datetime(2024, 5, 1, 12, 0, 0)
        offset = datetime(2024, 5, 1, 14, 0, 0, tzinfo=timezone(timedelta(hours=2)))

        assert format_timestamp(naive) == "2024-05-01T12:00:00.000Z"
        assert format_timestamp(offset) == "2024-05-01T12:00:00.000Z"

    def test_level_serialized_as_string(self):
        span = Span(trace_id="t-1", level=ObservationLevel.ERROR)
        assert span.to_dict()["level"] == "ERROR"

        span.level = "WARNING"
        assert span.to_dict()["level"] == "WARNING"

    def test_invalid_level_rejected_on_assignment(self):
        span = Span(trace_id="t-1")
        with pytest.raises(ValidationError):
            span.level = "LOUD"

    def test_generation_fields(self):
        generation = Generation(
            trace_id="t-1",
            model="gpt-4o",
            model_parameters={"temperature": 0.2},
            usage=Usage(input=10, output=5, total=15, unit="TOKENS"),
            prompt_name="qa",
            prompt_version=3,
        )

        data = generation.to_dict()
        assert data["model"] == "gpt-4o"
        assert data["modelParameters"] == {"temperature": 0.2}
        assert data["usage"] == {"input": 10, "output": 5, "total": 15, "unit": "TOKENS"}
        assert data["promptName"] == "qa"
        assert data["promptVersion"] == 3

    def test_arbitrary_input_serialized(self):
        class Opaque:
            def __str__(self):
                return "opaque-object"

        trace = Trace(input={"obj": Opaque(), "when": datetime(2024, 1, 1, tzinfo=timezone.utc)})

        data = trace.to_dict()
        assert data["input"]["obj"] == "opaque-object"
        assert data["input"]["when"].startswith("2024-01-01T00:00:00")

    def test_score_value_types(self):
        assert Score(trace_id="t-1", name="accuracy", value=0.9).to_dict()["value"] == 0.9
        assert Score(trace_id="t-1", name="label", value="good").to_dict()["value"] == "good"


class TestEnvelope:
    """Ingestion envelope."""

    def test_envelope_shape(self):
        trace = Trace(name="t")
        envelope = Envelope(type=EventType.TRACE_CREATE, body=trace)

        data = envelope.to_dict()
        assert set(data) == {"id", "type", "timestamp", "body"}
        assert data["type"] == "trace-create"
        assert data["body"]["id"] == trace.id
        assert ISO_MILLIS.match(data["timestamp"])

    def test_envelope_id_independent_of_body(self):
        trace = Trace(name="t")
        first = Envelope(type=EventType.TRACE_CREATE, body=trace)
        second = Envelope(type=EventType.TRACE_CREATE, body=trace)

        assert first.id != second.id
        assert first.id != trace.id
        assert uuid.UUID(first.id).version == 4

    def test_metadata_included_when_set(self):
        envelope = Envelope(type=EventType.SCORE_CREATE, body=Score(trace_id="t"), metadata={"sdk": "py"})
        assert envelope.to_dict()["metadata"] == {"sdk": "py"}

    def test_envelope_is_frozen(self):
        envelope = Envelope(type=EventType.TRACE_CREATE, body=Trace())
        with pytest.raises(ValidationError):
            envelope.id = "other"

    def test_body_serialized_at_send_time(self):
        span = Span(trace_id="t-1")
        envelope = Envelope(type=EventType.SPAN_CREATE, body=span)

        span.output = "late"
        assert envelope.to_dict()["body"]["output"] == "late"


class TestIngestionResponse:
    """Per-event status normalization."""

    @pytest.mark.parametrize(
        "status,expected",
        [(404, 404), ("404", 404), (" 429 ", 429), ("abc", None), (None, None), (True, None)],
    )
    def test_status_normalized(self, status, expected):
        response = IngestionResponse.model_validate({"errors": [{"id": "e", "status": status}]})
        assert response.errors[0].status == expected

    @pytest.mark.parametrize(
        "status,retryable",
        [(400, False), (404, False), (422, False), (429, True), (500, True), (503, True), (None, True)],
    )
    def test_retryable_classification(self, status, retryable):
        response = IngestionResponse.model_validate({"errors": [{"id": "e", "status": status}]})
        assert response.errors[0].is_retryable is retryable

    def test_missing_lists_default_to_empty(self):
        response = IngestionResponse.model_validate({"successes": None})
        assert response.successes == []
        assert response.errors == []

    def test_unknown_fields_tolerated(self):
        response = IngestionResponse.model_validate(
            {"errors": [{"id": "e", "status": 400, "message": "bad", "extra": 1}], "requestId": "r"}
        )
        assert response.errors[0].describe() == "bad"
