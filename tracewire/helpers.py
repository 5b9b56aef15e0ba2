"""
Scoped helpers for instrumenting application code.

Each helper creates a record, makes it the current context for a ``with``
block and sends the record's final state when the block exits:

    with trace_scope(client, "checkout", user_id="u-1") as trace:
        with span_scope(client, "load-cart") as span:
            span.output = load_cart()

The ``observe`` decorator does the same around a function call.
"""

import functools
import inspect
import logging
import traceback
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional, TypeVar

from . import context
from ._utils.serialization import to_jsonable
from .client import Tracewire
from .exceptions import PreconditionError
from .types import Generation, ObservationLevel, Score, Span, Trace
from .types.records import utc_now

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

MAX_TRACEBACK_LINES = 10


def _record_error(observation: Span, error: BaseException) -> None:
    """Mark an observation as failed and keep the innermost frames."""
    observation.level = ObservationLevel.ERROR
    observation.status_message = str(error) or type(error).__name__
    metadata = dict(observation.metadata or {})
    frames = traceback.format_tb(error.__traceback__)
    if frames:
        metadata["error_backtrace"] = frames[-MAX_TRACEBACK_LINES:]
    observation.metadata = metadata


@contextmanager
def trace_scope(client: Tracewire, name: str, **attributes: Any) -> Iterator[Trace]:
    """
    Create a trace and make it the current trace for the block.

    If the block sets ``trace.output`` it is sent as an update on exit. When
    the block raises, buffered events are flushed before the error propagates.

    Args:
        client: Tracewire client
        name: Trace name
        **attributes: Other trace fields (user_id, session_id, metadata, ...)
    """
    trace = client.trace(name=name, **attributes)
    initial_output = trace.output

    try:
        with context.with_trace(trace):
            yield trace
    except BaseException:
        _send_trace_output(client, trace, initial_output)
        try:
            client.flush()
        except Exception as flush_error:
            logger.error(f"Flush after failed trace {trace.id} failed: {flush_error}")
        raise
    else:
        _send_trace_output(client, trace, initial_output)


def _send_trace_output(client: Tracewire, trace: Trace, initial_output: Any) -> None:
    if trace.output is not None and trace.output != initial_output:
        client.trace(id=trace.id, output=trace.output)


@contextmanager
def _observation_scope(observation: Span, update: Callable[[Any], Any]) -> Iterator[Any]:
    try:
        with context.with_span(observation):
            yield observation
    except BaseException as e:
        _record_error(observation, e)
        raise
    finally:
        observation.end_time = utc_now()
        update(observation)


def _resolve_parent(attributes: Dict[str, Any], operation: str) -> Dict[str, Any]:
    resolved = dict(attributes)
    frame = context.current()
    if resolved.get("trace_id") is None:
        resolved["trace_id"] = frame.trace_id
    if resolved.get("parent_observation_id") is None and frame.span_id is not None:
        resolved["parent_observation_id"] = frame.span_id
    if resolved["trace_id"] is None:
        raise PreconditionError(
            f"No trace context found for {operation}",
            hint="Call it inside trace_scope() or with_trace(), or pass trace_id explicitly.",
            details={"operation": operation},
        )
    return resolved


@contextmanager
def span_scope(
    client: Tracewire,
    name: str,
    input: Any = None,
    **attributes: Any,
) -> Iterator[Span]:
    """
    Create a span under the current context and make it the current span.

    On exit the span gets its ``end_time`` (and error details when the block
    raised) and is sent with ``update_span``.

    Raises:
        PreconditionError: If there is no current trace and no ``trace_id`` was given
    """
    resolved = _resolve_parent(attributes, "span_scope")
    span = client.span(name=name, input=input, **resolved)
    with _observation_scope(span, client.update_span) as observation:
        yield observation


@contextmanager
def generation_scope(
    client: Tracewire,
    name: str,
    model: Optional[str],
    input: Any = None,
    model_parameters: Optional[Dict[str, Any]] = None,
    **attributes: Any,
) -> Iterator[Generation]:
    """
    Create a generation under the current context for a model call.

    Set ``generation.output`` and ``generation.usage`` inside the block; they
    are sent with ``update_generation`` on exit.

    Raises:
        PreconditionError: If there is no current trace and no ``trace_id`` was given
    """
    resolved = _resolve_parent(attributes, "generation_scope")
    generation = client.generation(
        name=name,
        model=model,
        input=input,
        model_parameters=model_parameters or {},
        **resolved,
    )
    with _observation_scope(generation, client.update_generation) as observation:
        yield observation


def score_trace(
    client: Tracewire,
    trace_id: str,
    name: str,
    value: Any,
    comment: Optional[str] = None,
) -> Score:
    """Add a score to a trace."""
    return client.score(trace_id=trace_id, name=name, value=value, comment=comment)


def _capture_arguments(func: Callable, args: tuple, kwargs: dict) -> Any:
    try:
        bound = inspect.signature(func).bind_partial(*args, **kwargs)
    except (TypeError, ValueError):
        return to_jsonable({"args": list(args), "kwargs": kwargs})

    arguments = dict(bound.arguments)
    for skipped in ("self", "cls"):
        arguments.pop(skipped, None)
    return to_jsonable(arguments)


def observe(
    client: Tracewire,
    name: Optional[str] = None,
    as_type: str = "span",
    capture_input: bool = True,
    capture_output: bool = True,
    **attributes: Any,
) -> Callable[[F], F]:
    """
    Decorator recording each call of a function as a span or generation.

    Works for sync and async functions. The call must happen inside a trace
    context (``trace_scope`` or ``with_trace``).

    Args:
        client: Tracewire client
        name: Observation name (defaults to the function name)
        as_type: "span" or "generation"
        capture_input: Record call arguments as input
        capture_output: Record the return value as output
        **attributes: Extra fields for the observation (e.g. ``model``)

    Example:
        >>> @observe(client, as_type="generation", model="gpt-4o")
        ... def answer(question):
        ...     return llm(question)
    """
    if as_type not in ("span", "generation"):
        raise ValueError(f"as_type must be 'span' or 'generation', got {as_type!r}")

    def decorator(func: F) -> F:
        observation_name = name or func.__name__

        def open_scope(args: tuple, kwargs: dict):
            scope_input = _capture_arguments(func, args, kwargs) if capture_input else None
            if as_type == "generation":
                scope_attributes = dict(attributes)
                model = scope_attributes.pop("model", None)
                return generation_scope(
                    client, observation_name, model=model, input=scope_input, **scope_attributes
                )
            return span_scope(client, observation_name, input=scope_input, **attributes)

        if inspect.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with open_scope(args, kwargs) as observation:
                    result = await func(*args, **kwargs)
                    if capture_output:
                        observation.output = to_jsonable(result)
                    return result

            return async_wrapper  # type: ignore[return-value]

        @functools.wraps(func)
        def sync_wrapper(*args, **kwargs):
            with open_scope(args, kwargs) as observation:
                result = func(*args, **kwargs)
                if capture_output:
                    observation.output = to_jsonable(result)
                return result

        return sync_wrapper  # type: ignore[return-value]

    return decorator


__all__ = [
    "trace_scope",
    "span_scope",
    "generation_scope",
    "score_trace",
    "observe",
]
