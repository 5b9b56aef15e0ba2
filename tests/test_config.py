"""Tests for configuration module."""

import base64
import dataclasses
import os
from unittest.mock import patch

import pytest

from tracewire.config import DEFAULT_HOST, TracewireConfig
from tracewire.exceptions import ConfigurationError


class TestTracewireConfig:
    """Test configuration functionality."""

    def test_defaults(self):
        config = TracewireConfig()

        assert config.host == DEFAULT_HOST
        assert config.batch_size == 10
        assert config.flush_interval == 60.0
        assert config.shutdown_timeout == 5.0
        assert config.request_timeout == 10.0
        assert config.max_retries == 5
        assert config.retry_base_delay == 10.0
        assert config.background_delivery is True
        assert config.debug is False
        assert config.disable_at_exit_hook is False
        assert config.dead_letter_path is None

    def test_config_from_env(self):
        """Test configuration from environment variables."""
        with patch.dict(os.environ, {
            "TRACEWIRE_PUBLIC_KEY": "pk-env",
            "TRACEWIRE_SECRET_KEY": "sk-env",
            "TRACEWIRE_HOST": "https://ingest.example.com/",
            "TRACEWIRE_BATCH_SIZE": "25",
            "TRACEWIRE_FLUSH_INTERVAL": "2.5",
            "TRACEWIRE_DEBUG": "true",
            "TRACEWIRE_BACKGROUND_DELIVERY": "false",
            "TRACEWIRE_DISABLE_AT_EXIT_HOOK": "1",
        }, clear=True):
            config = TracewireConfig.from_env()

        assert config.public_key == "pk-env"
        assert config.secret_key == "sk-env"
        assert config.host == "https://ingest.example.com"
        assert config.batch_size == 25
        assert config.flush_interval == 2.5
        assert config.debug is True
        assert config.background_delivery is False
        assert config.disable_at_exit_hook is True

    def test_overrides_take_precedence(self):
        with patch.dict(os.environ, {
            "TRACEWIRE_PUBLIC_KEY": "pk-env",
            "TRACEWIRE_BATCH_SIZE": "25",
            "TRACEWIRE_DEBUG": "true",
        }, clear=True):
            config = TracewireConfig.from_env(public_key="pk-explicit", batch_size=3, debug=False)

        assert config.public_key == "pk-explicit"
        assert config.batch_size == 3
        assert config.debug is False

    def test_unknown_override_rejected(self):
        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(ConfigurationError, match="batchsize"):
                TracewireConfig.from_env(batchsize=3)

    def test_invalid_env_value(self):
        with patch.dict(os.environ, {"TRACEWIRE_BATCH_SIZE": "lots"}, clear=True):
            with pytest.raises(ConfigurationError, match="Invalid configuration value"):
                TracewireConfig.from_env()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("batch_size", 0),
            ("flush_interval", 0),
            ("shutdown_timeout", -1),
            ("request_timeout", 0),
            ("max_retries", -1),
            ("max_workers", 0),
            ("max_queue_size", 0),
        ],
    )
    def test_validation(self, field, value):
        with pytest.raises(ConfigurationError):
            TracewireConfig(**{field: value})

    def test_host_validation(self):
        with pytest.raises(ConfigurationError, match="http"):
            TracewireConfig(host="ingest.example.com")

    def test_frozen(self):
        config = TracewireConfig()
        with pytest.raises(dataclasses.FrozenInstanceError):
            config.batch_size = 5

    def test_credentials_are_checked_lazily(self):
        config = TracewireConfig()

        with pytest.raises(ConfigurationError, match="public_key and secret_key"):
            config.get_headers()

    def test_auth_header(self):
        config = TracewireConfig(public_key="pk-lf-1", secret_key="sk-lf-2")

        expected = base64.b64encode(b"pk-lf-1:sk-lf-2").decode("ascii")
        assert config.auth_header() == f"Basic {expected}"
        assert config.get_headers()["Content-Type"] == "application/json"

    def test_ingestion_url(self):
        config = TracewireConfig(host="http://localhost:3000/")
        assert config.ingestion_url == "http://localhost:3000/api/public/ingestion"

    def test_repr_masks_secret(self):
        config = TracewireConfig(public_key="pk-lf-1", secret_key="sk-lf-abcdefgh1234")

        text = repr(config)
        assert "sk-lf-abcdefgh1234" not in text
        assert "1234" in text
        assert "pk-lf-1" in text
