"""Configuration management for CellSight."""

from typing import Literal

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from cellsight import ConfigurationError


class CellSightConfig(BaseSettings):
    """Application configuration loaded from environment variables.

    Environment variables should be prefixed with CELLSIGHT_
    Example: CELLSIGHT_API_BASE_URL=https://assistant.example.com

    Attributes:
        api_base_url: Base URL of the assistant backend
        request_timeout: Per-request timeout in seconds
        login_path: Endpoint issuing session ids
        analysis_path: Endpoint starting a conversation about a cell
        chat_path: Endpoint continuing a conversation
        log_level: Default log level for the CLI
        transcript_format: Default transcript output format
    """

    # API Configuration
    api_base_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the assistant backend",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Request timeout in seconds",
    )
    login_path: str = Field(
        default="/login",
        description="Path of the login endpoint",
    )
    analysis_path: str = Field(
        default="/analysis",
        description="Path of the streaming analysis endpoint",
    )
    chat_path: str = Field(
        default="/chat",
        description="Path of the streaming follow-up endpoint",
    )

    # Output Configuration
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Log level used by the CLI",
    )
    transcript_format: Literal["json", "text", "markdown"] = Field(
        default="markdown",
        description="Default transcript format",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CELLSIGHT_",
        case_sensitive=False,
        extra="ignore",
    )


# Global config instance (lazy-loaded)
_config: CellSightConfig | None = None


def get_config() -> CellSightConfig:
    """Get or create the global configuration instance.

    Returns:
        CellSightConfig: The configuration object

    Raises:
        ConfigurationError: If an environment variable holds an invalid value
    """
    global _config
    if _config is None:
        try:
            _config = CellSightConfig()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
    return _config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _config
    _config = None
