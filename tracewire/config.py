"""
Configuration management for the Tracewire SDK.

Supports both programmatic configuration and environment variable-based
configuration following the 12-factor app pattern. A config object is frozen
once built so it can be shared between producer threads, the flush timer and
delivery workers without locking.
"""

import base64
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError

DEFAULT_HOST = "https://cloud.langfuse.com"
INGESTION_PATH = "/api/public/ingestion"


@dataclass(frozen=True)
class TracewireConfig:
    """
    Configuration for the Tracewire SDK.

    Credentials are validated lazily: a config without keys can be built and
    used to buffer events, and the missing keys only surface when a batch is
    sent.
    """

    # ========== Credentials ==========
    public_key: Optional[str] = None
    """Project public key (``pk-...``)"""

    secret_key: Optional[str] = None
    """Project secret key (``sk-...``)"""

    # ========== Connection ==========
    host: str = DEFAULT_HOST
    """Ingestion API base URL"""

    request_timeout: float = 10.0
    """HTTP timeout in seconds for one ingestion request"""

    # ========== Batching ==========
    batch_size: int = 10
    """Number of pending events that triggers an immediate flush"""

    flush_interval: float = 60.0
    """Seconds between periodic flushes"""

    shutdown_timeout: float = 5.0
    """Upper bound in seconds for the final flush on shutdown"""

    # ========== Delivery ==========
    max_retries: int = 5
    """Retries after the first failed delivery attempt"""

    retry_base_delay: float = 10.0
    """Retry delay step; attempt N waits ``retry_base_delay * N`` seconds"""

    background_delivery: bool = True
    """Deliver batches on background worker threads (False: inline)"""

    max_workers: int = 2
    """Number of background delivery threads"""

    max_queue_size: int = 1000
    """Maximum number of batches waiting for a background worker"""

    dead_letter_path: Optional[str] = None
    """JSON-lines file for permanently failed events (in-memory if unset)"""

    # ========== Misc ==========
    debug: bool = False
    """Enable verbose debug logging of requests and responses"""

    disable_at_exit_hook: bool = False
    """Do not register an interpreter-exit shutdown hook"""

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.host:
            object.__setattr__(self, "host", self.host.rstrip("/"))
        self.validate()

    def validate(self) -> None:
        """
        Validate configuration parameters.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not self.host:
            raise ConfigurationError("host is required")
        if not self.host.startswith(("http://", "https://")):
            raise ConfigurationError("host must start with http:// or https://")

        if self.batch_size < 1:
            raise ConfigurationError("batch_size must be at least 1")

        if self.flush_interval <= 0:
            raise ConfigurationError("flush_interval must be positive")

        if self.shutdown_timeout < 0:
            raise ConfigurationError("shutdown_timeout cannot be negative")

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be positive")

        if self.max_retries < 0:
            raise ConfigurationError("max_retries cannot be negative")

        if self.retry_base_delay < 0:
            raise ConfigurationError("retry_base_delay cannot be negative")

        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")

        if self.max_queue_size < 1:
            raise ConfigurationError("max_queue_size must be at least 1")

    @classmethod
    def from_env(cls, **overrides: Any) -> "TracewireConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            TRACEWIRE_PUBLIC_KEY - Public key
            TRACEWIRE_SECRET_KEY - Secret key
            TRACEWIRE_HOST - API base URL (default: https://cloud.langfuse.com)
            TRACEWIRE_BATCH_SIZE - Flush threshold (default: 10)
            TRACEWIRE_FLUSH_INTERVAL - Seconds between flushes (default: 60)
            TRACEWIRE_SHUTDOWN_TIMEOUT - Shutdown bound in seconds (default: 5)
            TRACEWIRE_DEBUG - Enable debug logging (default: false)
            TRACEWIRE_REQUEST_TIMEOUT - HTTP timeout in seconds (default: 10)
            TRACEWIRE_MAX_RETRIES - Delivery retries (default: 5)
            TRACEWIRE_RETRY_BASE_DELAY - Retry delay step in seconds (default: 10)
            TRACEWIRE_BACKGROUND_DELIVERY - Use background workers (default: true)
            TRACEWIRE_MAX_WORKERS - Background worker threads (default: 2)
            TRACEWIRE_MAX_QUEUE_SIZE - Queued batches limit (default: 1000)
            TRACEWIRE_DEAD_LETTER_PATH - JSON-lines dead-letter file
            TRACEWIRE_DISABLE_AT_EXIT_HOOK - Skip the exit hook (default: false)

        Args:
            **overrides: Explicit values; they take precedence over the environment

        Returns:
            TracewireConfig instance

        Raises:
            ConfigurationError: If a value is invalid
        """
        unknown = set(overrides) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown configuration option(s): {', '.join(sorted(unknown))}")

        def pick(name: str, env_var: str, default: Optional[str]) -> Any:
            if overrides.get(name) is not None:
                return overrides[name]
            return os.getenv(env_var, default)

        try:
            return cls(
                public_key=pick("public_key", "TRACEWIRE_PUBLIC_KEY", None),
                secret_key=pick("secret_key", "TRACEWIRE_SECRET_KEY", None),
                host=pick("host", "TRACEWIRE_HOST", DEFAULT_HOST),
                request_timeout=float(pick("request_timeout", "TRACEWIRE_REQUEST_TIMEOUT", "10")),
                batch_size=int(pick("batch_size", "TRACEWIRE_BATCH_SIZE", "10")),
                flush_interval=float(pick("flush_interval", "TRACEWIRE_FLUSH_INTERVAL", "60")),
                shutdown_timeout=float(pick("shutdown_timeout", "TRACEWIRE_SHUTDOWN_TIMEOUT", "5")),
                max_retries=int(pick("max_retries", "TRACEWIRE_MAX_RETRIES", "5")),
                retry_base_delay=float(pick("retry_base_delay", "TRACEWIRE_RETRY_BASE_DELAY", "10")),
                background_delivery=cls._parse_bool(
                    overrides.get("background_delivery"),
                    os.getenv("TRACEWIRE_BACKGROUND_DELIVERY", "true"),
                ),
                max_workers=int(pick("max_workers", "TRACEWIRE_MAX_WORKERS", "2")),
                max_queue_size=int(pick("max_queue_size", "TRACEWIRE_MAX_QUEUE_SIZE", "1000")),
                dead_letter_path=pick("dead_letter_path", "TRACEWIRE_DEAD_LETTER_PATH", None),
                debug=cls._parse_bool(
                    overrides.get("debug"),
                    os.getenv("TRACEWIRE_DEBUG", "false"),
                ),
                disable_at_exit_hook=cls._parse_bool(
                    overrides.get("disable_at_exit_hook"),
                    os.getenv("TRACEWIRE_DISABLE_AT_EXIT_HOOK", "false"),
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid configuration value: {e}") from e

    @staticmethod
    def _parse_bool(override_value: Optional[bool], env_value: str) -> bool:
        """
        Parse boolean value from override or environment variable.

        Args:
            override_value: Explicit override value (takes precedence)
            env_value: Environment variable string value

        Returns:
            Boolean value
        """
        if override_value is not None:
            return bool(override_value)

        env_lower = env_value.lower().strip()
        return env_lower in ("true", "1", "yes", "on", "enabled")

    @property
    def ingestion_url(self) -> str:
        """Get the batch ingestion endpoint URL."""
        return f"{self.host}{INGESTION_PATH}"

    def require_credentials(self) -> None:
        """Raise ConfigurationError unless both keys are set."""
        if not self.public_key or not self.secret_key:
            raise ConfigurationError.missing_credentials()

    def auth_header(self) -> str:
        """Basic authorization header value for the key pair."""
        self.require_credentials()
        token = base64.b64encode(f"{self.public_key}:{self.secret_key}".encode("utf-8"))
        return f"Basic {token.decode('ascii')}"

    def get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for ingestion requests."""
        return {
            "Authorization": self.auth_header(),
            "Content-Type": "application/json",
        }

    def masked_secret_key(self) -> str:
        """Secret key with everything but the last four characters hidden."""
        if not self.secret_key:
            return "<unset>"
        if len(self.secret_key) <= 8:
            return "***"
        return f"{self.secret_key[:3]}...{self.secret_key[-4:]}"

    def __repr__(self) -> str:
        """Safe string representation (masks the secret key)."""
        return (
            f"TracewireConfig("
            f"public_key={self.public_key!r}, "
            f"secret_key='{self.masked_secret_key()}', "
            f"host='{self.host}', "
            f"batch_size={self.batch_size}, "
            f"flush_interval={self.flush_interval}, "
            f"background_delivery={self.background_delivery}, "
            f"debug={self.debug})"
        )
