"""Tests for configuration loading."""

import pytest

from cellsight import ConfigurationError
from cellsight.config import CellSightConfig, get_config, reset_config


class TestConfig:
    """Test CellSightConfig and the global accessor."""

    def test_defaults(self, monkeypatch):
        """Test default endpoint settings."""
        monkeypatch.delenv("CELLSIGHT_API_BASE_URL", raising=False)
        config = CellSightConfig(_env_file=None)

        assert config.api_base_url == "http://localhost:8080"
        assert config.request_timeout == 30.0
        assert config.analysis_path == "/analysis"
        assert config.transcript_format == "markdown"

    def test_environment_override(self, monkeypatch):
        """Test that prefixed environment variables are read."""
        monkeypatch.setenv("CELLSIGHT_CHAT_PATH", "/v2/chat")
        monkeypatch.setenv("CELLSIGHT_REQUEST_TIMEOUT", "12.5")

        config = get_config()

        assert config.chat_path == "/v2/chat"
        assert config.request_timeout == 12.5
        assert get_config() is config

    def test_reset(self):
        """Test that reset drops the cached configuration."""
        config = get_config()
        reset_config()
        assert get_config() is not config

    def test_invalid_value(self, monkeypatch):
        """Test that an invalid setting raises ConfigurationError."""
        monkeypatch.setenv("CELLSIGHT_REQUEST_TIMEOUT", "0")

        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            get_config()
