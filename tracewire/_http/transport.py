"""
HTTP Transport

Sends one batch of envelopes to the ingestion API per call and interprets
the status code.
"""

import json
import logging
from typing import Any, Dict, Optional, Sequence

import httpx

from ..config import TracewireConfig
from ..exceptions import ApiError, NetworkError, ResponseParseError, TransportError
from ..types.ingestion import Envelope

logger = logging.getLogger(__name__)


class HttpTransport:
    """
    Sync HTTP transport for the batch ingestion endpoint.

    Wraps httpx.Client with Basic authentication and status interpretation.
    Holds no per-batch state, so one instance is shared by every delivery
    thread (httpx.Client is thread-safe).
    """

    def __init__(self, config: TracewireConfig, client: Optional[httpx.Client] = None):
        """
        Initialize HTTP transport.

        Args:
            config: TracewireConfig instance
            client: Optional pre-built httpx.Client (tests pass one with a MockTransport)
        """
        self._config = config
        self._session: Optional[httpx.Client] = client

    def _get_session(self) -> httpx.Client:
        """Get or create httpx session."""
        if self._session is None:
            self._session = httpx.Client(timeout=httpx.Timeout(self._config.request_timeout))
        return self._session

    def send(self, batch: Sequence[Envelope]) -> Dict[str, Any]:
        """
        POST a batch to the ingestion endpoint.

        Args:
            batch: Envelopes to send in one request

        Returns:
            Parsed JSON body of a 2xx / 207 response

        Raises:
            ConfigurationError: If credentials are missing
            NetworkError: On timeouts and connection failures
            ApiError: On any non-success status
            ResponseParseError: If the response body is not valid JSON
        """
        url = self._config.ingestion_url
        headers = self._config.get_headers()
        content = json.dumps({"batch": [envelope.to_dict() for envelope in batch]}, default=str)

        self._debug(
            f"Sending {len(batch)} events ({len(content)} bytes) to {url} "
            f"(public_key: {self._config.public_key}, authorization: {headers['Authorization']})"
        )

        try:
            response = self._get_session().post(url, content=content, headers=headers)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            logger.error(f"Network error during ingestion request: {e}")
            raise NetworkError.from_exception(e, url) from e
        except httpx.HTTPError as e:
            logger.error(f"Error during ingestion request: {e}")
            raise TransportError(f"HTTP error while sending to {url}: {e}") from e

        status = response.status_code
        if status == 207:
            self._debug("Received 207 partial success response")
        elif 200 <= status < 300:
            self._debug(f"Received successful response: {status}")
        else:
            self._debug(f"Response body: {response.text}")
            error = ApiError.from_response(status, response.reason_phrase, response.text)
            logger.error(error.message)
            raise error

        return self._parse_body(response)

    def _parse_body(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise ResponseParseError(
                f"Could not parse ingestion response ({response.status_code}): {e}",
                details={"status_code": response.status_code, "response": response.text[:500]},
            ) from e
        if not isinstance(body, dict):
            raise ResponseParseError(
                f"Unexpected ingestion response type: {type(body).__name__}",
                details={"status_code": response.status_code},
            )
        return body

    def _debug(self, message: str) -> None:
        """Log only in debug mode; request lines carry the raw Authorization header."""
        if self._config.debug:
            logger.debug(message)

    def close(self) -> None:
        """Close HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None
