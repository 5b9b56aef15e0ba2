"""
Execution-scoped context for observability.

Keeps track of the current trace/span identifiers so nested code can build
the proper hierarchy without callers passing identifiers around manually.
Frames live in a ContextVar, so every thread and every asyncio task sees its
own frame stack and never observes or mutates another one.
"""

from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, replace
from typing import Any, Iterator, Optional, Union


@dataclass(frozen=True)
class ContextFrame:
    """Identifiers visible to the current execution scope."""

    trace_id: Optional[str] = None
    span_id: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.trace_id is None and self.span_id is None


_EMPTY_FRAME = ContextFrame()

_current_frame: ContextVar[ContextFrame] = ContextVar(
    "tracewire_context_frame",
    default=_EMPTY_FRAME,
)


def _resolve_id(target: Union[str, Any]) -> Optional[str]:
    if target is None or isinstance(target, str):
        return target
    return getattr(target, "id", None)


def current() -> ContextFrame:
    """Return the frame visible to the calling scope (empty if none was pushed)."""
    return _current_frame.get()


def current_trace_id() -> Optional[str]:
    """Return the active trace identifier, if any."""
    return current().trace_id


def current_span_id() -> Optional[str]:
    """Return the active span identifier, if any."""
    return current().span_id


@contextmanager
def _install(frame: ContextFrame) -> Iterator[ContextFrame]:
    token = _current_frame.set(frame)
    try:
        yield frame
    finally:
        _current_frame.reset(token)


@contextmanager
def with_trace(trace: Union[str, Any]) -> Iterator[ContextFrame]:
    """
    Make ``trace`` the current trace for the duration of a ``with`` block.

    Any span from an enclosing scope is not carried over. The previous frame
    is restored when the block exits, including when it raises.

    Args:
        trace: A record with an ``id`` attribute, or a trace id string
    """
    trace_id = _resolve_id(trace)
    if trace_id is None:
        with _install(current()) as frame:
            yield frame
        return

    with _install(ContextFrame(trace_id=trace_id)) as frame:
        yield frame


@contextmanager
def with_span(span: Union[str, Any]) -> Iterator[ContextFrame]:
    """
    Make ``span`` the current span, keeping the current trace id.

    Args:
        span: A record with an ``id`` attribute, or a span id string
    """
    span_id = _resolve_id(span)
    frame = current()
    if span_id is not None:
        frame = replace(frame, span_id=span_id)

    with _install(frame) as installed:
        yield installed


def clear_context() -> None:
    """Reset the current scope to the empty frame (useful in tests)."""
    _current_frame.set(_EMPTY_FRAME)


__all__ = [
    "ContextFrame",
    "current",
    "current_trace_id",
    "current_span_id",
    "with_trace",
    "with_span",
    "clear_context",
]
