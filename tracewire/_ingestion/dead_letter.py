"""
Dead-letter sinks for events that could not be delivered.

An event lands here when the API rejects it permanently (4xx other than 429)
or when its batch runs out of retries. Nothing is dropped silently: each
entry keeps the serialized envelope, the error message and when it failed,
so events can be inspected or re-sent by hand.
"""

import json
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Deque, Dict, List, Optional, Union

from ..types.ingestion import Envelope
from ..types.records import format_timestamp, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeadLetterEntry:
    """One permanently failed event."""

    event: Dict[str, Any]
    error: str
    timestamp: str = field(default_factory=lambda: format_timestamp(utc_now()))

    @property
    def event_id(self) -> Optional[str]:
        return self.event.get("id")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DeadLetterSink(ABC):
    """Interface for dead-letter storage."""

    def store(self, envelope: Envelope, error: str) -> DeadLetterEntry:
        entry = DeadLetterEntry(event=envelope.to_dict(), error=error)
        self._write(entry)
        logger.error(f"Dead-lettered event {entry.event_id} ({envelope.type.value}): {error}")
        return entry

    @abstractmethod
    def _write(self, entry: DeadLetterEntry) -> None:
        """Persist one entry."""
        pass

    @abstractmethod
    def entries(self) -> List[DeadLetterEntry]:
        """Return stored entries, oldest first."""
        pass

    def __len__(self) -> int:
        return len(self.entries())


class InMemoryDeadLetterSink(DeadLetterSink):
    """
    Bounded in-process dead-letter list.

    Oldest entries are evicted once ``max_entries`` is reached.

    Thread Safety:
        Safe to use from several delivery threads at once.
    """

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        self._entries: Deque[DeadLetterEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()
        self._evicted = 0

    def _write(self, entry: DeadLetterEntry) -> None:
        with self._lock:
            if len(self._entries) == self._entries.maxlen:
                self._evicted += 1
            self._entries.append(entry)

    def entries(self) -> List[DeadLetterEntry]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> List[DeadLetterEntry]:
        """Remove and return all entries (e.g. to re-send them)."""
        with self._lock:
            drained = list(self._entries)
            self._entries.clear()
            return drained

    @property
    def evicted_count(self) -> int:
        return self._evicted


class JsonlDeadLetterSink(DeadLetterSink):
    """Appends one JSON object per failed event to a file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _write(self, entry: DeadLetterEntry) -> None:
        line = json.dumps(entry.to_dict(), default=str)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")

    def entries(self) -> List[DeadLetterEntry]:
        if not self.path.exists():
            return []
        with self._lock:
            lines = self.path.read_text(encoding="utf-8").splitlines()
        return [DeadLetterEntry(**json.loads(line)) for line in lines if line.strip()]


def create_dead_letter_sink(path: Optional[str] = None) -> DeadLetterSink:
    """JSON-lines sink when a path is configured, in-memory otherwise."""
    if path:
        return JsonlDeadLetterSink(path)
    return InMemoryDeadLetterSink()
