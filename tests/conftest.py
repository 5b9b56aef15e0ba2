"""Pytest configuration and fixtures for Tracewire SDK tests."""

import threading
from typing import Any, Dict, List, Optional
from unittest.mock import patch

import pytest

from tracewire import context
from tracewire._ingestion import InMemoryDeadLetterSink
from tracewire.config import TracewireConfig
from tracewire.types import Envelope, EventType, Trace


class FakeTransport:
    """
    Scripted stand-in for HttpTransport.

    Each call to ``send`` pops the next scripted outcome: a dict is returned
    as the parsed response body, an exception instance is raised. Once the
    script is exhausted every send succeeds with an empty response.
    """

    def __init__(self, *outcomes: Any):
        self.outcomes: List[Any] = list(outcomes)
        self.sent: List[List[str]] = []
        self.batches: List[list] = []
        self.closed = False
        self._lock = threading.Lock()

    def send(self, batch) -> Dict[str, Any]:
        with self._lock:
            self.sent.append([envelope.id for envelope in batch])
            self.batches.append(list(batch))
            outcome = self.outcomes.pop(0) if self.outcomes else {"successes": [], "errors": []}
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def delivered_ids(self) -> List[str]:
        return [envelope_id for batch in self.sent for envelope_id in batch]

    def close(self) -> None:
        self.closed = True


def make_envelope(name: str = "test-trace", event_type: EventType = EventType.TRACE_CREATE) -> Envelope:
    return Envelope(type=event_type, body=Trace(name=name))


@pytest.fixture(autouse=True)
def clean_context():
    """Every test starts with an empty context frame."""
    context.clear_context()
    yield
    context.clear_context()


@pytest.fixture
def no_sleep():
    """Patch out retry sleeps; the mock records the requested delays."""
    with patch("time.sleep") as mock_sleep:
        yield mock_sleep


@pytest.fixture
def test_config() -> TracewireConfig:
    """Synchronous, hook-free configuration for unit tests."""
    return TracewireConfig(
        public_key="pk-test",
        secret_key="sk-test-secret",
        host="https://ingest.example.com",
        background_delivery=False,
        disable_at_exit_hook=True,
        flush_interval=3600.0,
    )


@pytest.fixture
def dead_letters() -> InMemoryDeadLetterSink:
    return InMemoryDeadLetterSink()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def envelope_factory():
    return make_envelope


def error_response(*errors: Dict[str, Any], successes: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    return {"successes": successes or [], "errors": list(errors)}
