"""
Tracewire SDK Error Classes

Error taxonomy for record creation and batch delivery. Precondition errors are
raised synchronously to application code; delivery-layer errors stay inside
the ingestion pipeline and surface through logging and the dead-letter sink.
"""

from typing import Any, Dict, Optional


class TracewireError(Exception):
    """
    Base error for all Tracewire SDK errors.

    Includes optional actionable guidance to help users resolve issues.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize TracewireError.

        Args:
            message: Main error message.
            hint: Optional actionable guidance.
            details: Additional error details.
        """
        self.message = message
        self.hint = hint
        self.details = details or {}

        full_message = message
        if hint:
            full_message = f"{message}\n\nTo fix:\n{hint}"

        super().__init__(full_message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class PreconditionError(TracewireError, ValueError):
    """
    A record was created or updated without its required fields.

    Raised before anything is buffered, so the offending record never
    reaches the ingestion API.
    """

    @classmethod
    def missing_field(cls, field: str, operation: str) -> "PreconditionError":
        return cls(
            f"{field} is required for {operation}",
            details={"field": field, "operation": operation},
        )


class ConfigurationError(TracewireError):
    """Configuration is invalid or incomplete."""

    @classmethod
    def missing_credentials(cls) -> "ConfigurationError":
        hint = """
1. Set your project keys:
   export TRACEWIRE_PUBLIC_KEY=pk-...
   export TRACEWIRE_SECRET_KEY=sk-...

2. Or pass them explicitly:
   Tracewire(public_key="pk-...", secret_key="sk-...")
""".strip()
        return cls("public_key and secret_key are required to send events", hint=hint)


class TransportError(TracewireError):
    """Base error for failures while talking to the ingestion API."""


class NetworkError(TransportError):
    """
    The ingestion API could not be reached.

    Covers connect/read timeouts and refused or reset connections.
    """

    @classmethod
    def from_exception(cls, original: Exception, url: str) -> "NetworkError":
        return cls(
            f"Network error while sending to {url}: {original}",
            details={"url": url, "error_type": type(original).__name__},
        )


class ApiError(TransportError):
    """The ingestion API answered with a non-success status code."""

    def __init__(self, message: str, *, status_code: int, **kwargs: Any):
        self.status_code = status_code
        super().__init__(message, **kwargs)

    @classmethod
    def from_response(cls, status_code: int, reason: str, body: str = "") -> "ApiError":
        return cls(
            f"API error: {status_code} {reason}".rstrip(),
            status_code=status_code,
            details={"status_code": status_code, "response": body},
        )


class ResponseParseError(TransportError):
    """The response body could not be decoded as JSON."""


class RetryableBatchError(TransportError):
    """The API accepted the request but reported transient per-event failures."""

    def __init__(self, message: str, *, statuses: Optional[Dict[str, Optional[int]]] = None):
        self.statuses = statuses or {}
        super().__init__(message, details={"statuses": self.statuses})


class DeliveryError(TracewireError):
    """
    A batch could not be delivered.

    Raised after the retry budget is exhausted; by then the remaining events
    of the batch have been moved to the dead-letter sink.
    """

    def __init__(self, message: str, *, event_ids: Optional[list] = None, attempts: int = 0):
        self.event_ids = event_ids or []
        self.attempts = attempts
        super().__init__(message, details={"event_ids": self.event_ids, "attempts": attempts})


__all__ = [
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
