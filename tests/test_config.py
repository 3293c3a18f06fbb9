"""
Tests for the configuration management system.

This module tests loading settings from environment variables, validation of
client options, and masking of sensitive values.
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from logos_client.config.options import ClientOptions, VadOptions
from logos_client.config.settings import Settings


def test_settings_defaults():
    """Test default values when no environment is set."""
    with patch.dict(os.environ, {}, clear=True):
        settings = Settings()

        assert settings.server.server_url == "http://localhost:8000"
        assert settings.server.api_key is None
        assert settings.server.role == "doll"
        assert settings.server.mode == "child"
        assert settings.vad.sensitivity == 5
        assert settings.vad.auto_calibrate is True
        assert settings.vad.timeout == 700
        assert settings.logging.level == "INFO"


def test_settings_from_environment():
    """Test that environment variables override defaults."""
    env = {
        "LOGOS_SERVER_URL": "https://logos.example",
        "LOGOS_API_KEY": "env_key",
        "LOGOS_ROLE": "guardian",
        "LOGOS_MODE": "senior",
        "LOGOS_VAD_SENSITIVITY": "8",
        "LOGOS_VAD_AUTO_CALIBRATE": "false",
        "LOGOS_VAD_TIMEOUT": "1200",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = Settings()

        assert settings.server.server_url == "https://logos.example"
        assert settings.server.api_key == "env_key"
        assert settings.server.role == "guardian"
        assert settings.server.mode == "senior"
        assert settings.vad.sensitivity == 8
        assert settings.vad.auto_calibrate is False
        assert settings.vad.timeout == 1200
        assert settings.logging.level == "DEBUG"


def test_invalid_settings_fall_back():
    """Test that invalid values are replaced by defaults."""
    env = {
        "LOGOS_ROLE": "robot",
        "LOGOS_MODE": "toddler",
        "LOGOS_VAD_SENSITIVITY": "42",
        "LOG_LEVEL": "LOUD",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = Settings()

        assert settings.server.role == "doll"
        assert settings.server.mode == "child"
        assert settings.vad.sensitivity == 5
        assert settings.logging.level == "INFO"


def test_to_client_options():
    """Test building client options with overrides."""
    env = {"LOGOS_SERVER_URL": "http://env.example", "LOGOS_VAD_TIMEOUT": "900"}
    with patch.dict(os.environ, env, clear=True):
        options = Settings().to_client_options(mode="senior", api_key=None)

        assert isinstance(options, ClientOptions)
        assert options.server_url == "http://env.example"
        assert options.mode == "senior"
        assert options.api_key is None
        assert options.vad.timeout == 900


def test_options_defaults():
    """Every option except the server URL has a default."""
    options = ClientOptions(server_url="http://localhost:8000")

    assert options.role == "doll"
    assert options.mode == "child"
    assert options.device_id is None
    assert options.vad == VadOptions(sensitivity=5, auto_calibrate=True, timeout=700)
    assert options.auto_reconnect is True
    assert options.reconnect_attempts == 5


def test_options_require_server_url():
    """An empty server URL is rejected."""
    with pytest.raises(ValidationError):
        ClientOptions(server_url="  ")


def test_options_reject_unknown_role():
    """Roles are restricted to the known set."""
    with pytest.raises(ValidationError):
        ClientOptions(server_url="http://localhost:8000", role="robot")


@pytest.mark.parametrize("given, expected", [(0, 1), (-3, 1), (11, 10), (7, 7)])
def test_sensitivity_is_clamped(given, expected):
    """Out-of-range sensitivity is clamped rather than rejected."""
    assert VadOptions(sensitivity=given).sensitivity == expected


def test_options_are_immutable():
    """Options cannot be modified after creation."""
    options = ClientOptions(server_url="http://localhost:8000")

    with pytest.raises(ValidationError):
        options.mode = "senior"


def test_api_key_masked():
    """The API key never appears in the string form of options."""
    options = ClientOptions(server_url="http://localhost:8000", api_key="secret_api_key")

    assert "secret_api_key" not in repr(options)
    assert "secret_api_key" not in str(options)
    assert "********" in repr(options)
