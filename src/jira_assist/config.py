"""Application configuration using pydantic-settings.

This module defines the Settings class that reads configuration from
environment variables (or a local .env file). Variable names match the
ones the web server and CLI have always used: JIRA_DOMAIN, JIRA_EMAIL,
JIRA_TOKEN, OLLAMA_MODEL, PORT and so on.

None of the fields are required. Jira credentials may be supplied later
through the server's /api/config endpoint or the CLI flags, and the
generation model is auto-detected when OLLAMA_MODEL is unset.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from jira_assist.jira.models import JiraConfig


class Settings(BaseSettings):
    """Jira Assist configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Jira Configuration
    # -------------------------------------------------------------------------
    # Site name (acme for acme.atlassian.net) or a full base URL
    jira_domain: str = ""

    # Atlassian account email used for Basic auth
    jira_email: str = ""

    # Jira API token
    jira_token: str = ""

    # Timeout in seconds for Jira REST calls
    jira_timeout_seconds: float = 30.0

    # -------------------------------------------------------------------------
    # Generation Service Configuration
    # -------------------------------------------------------------------------
    # Base URL of the Ollama HTTP API
    ollama_url: str = "http://localhost:11434/api"

    # Model used for enhancement; first available model when unset
    ollama_model: Optional[str] = None

    # Timeout in seconds for the chat completion call
    ollama_timeout_seconds: float = 45.0

    # Timeout in seconds for availability probes (ping, model listing)
    ollama_probe_timeout_seconds: float = 2.0

    # Sampling temperature for the chat completion call
    ollama_temperature: float = 0.7

    # Set to false to always use the rule-based rewriter
    generation_enabled: bool = True

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 3001

    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("ollama_url")
    @classmethod
    def validate_ollama_url(cls, v: str) -> str:
        """Validate that the Ollama URL is an http(s) URL."""
        if not v or not v.strip():
            raise ValueError("ollama_url cannot be empty")
        if not v.startswith(("http://", "https://")):
            raise ValueError("ollama_url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("ollama_model")
    @classmethod
    def validate_ollama_model(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank model name as unset."""
        if v is not None and not v.strip():
            return None
        return v

    @field_validator(
        "jira_timeout_seconds",
        "ollama_timeout_seconds",
        "ollama_probe_timeout_seconds",
    )
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate that timeouts are positive."""
        if v <= 0:
            raise ValueError("timeouts must be greater than 0 seconds")
        return v

    @field_validator("ollama_temperature")
    @classmethod
    def validate_temperature(cls, v: float) -> float:
        """Validate that temperature is within the range Ollama accepts."""
        if not 0.0 <= v <= 2.0:
            raise ValueError("ollama_temperature must be between 0.0 and 2.0")
        return v

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    def jira_config(self) -> JiraConfig:
        """Build the Jira credentials snapshot from the environment values."""
        return JiraConfig(
            domain=self.jira_domain,
            email=self.jira_email,
            api_token=self.jira_token,
        )


def get_settings() -> Settings:
    """Create and return a Settings instance.

    Returns:
        Settings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If a value is present but invalid.
    """
    return Settings()
