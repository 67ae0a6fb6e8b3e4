"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from jira_assist.config import Settings, get_settings


class TestSettingsDefaults:

    def test_defaults(self):
        settings = Settings()

        assert settings.jira_domain == ""
        assert settings.jira_timeout_seconds == 30.0
        assert settings.ollama_url == "http://localhost:11434/api"
        assert settings.ollama_model is None
        assert settings.ollama_timeout_seconds == 45.0
        assert settings.ollama_probe_timeout_seconds == 2.0
        assert settings.ollama_temperature == 0.7
        assert settings.generation_enabled is True
        assert settings.host == "0.0.0.0"
        assert settings.port == 3001
        assert settings.log_level == "INFO"

    def test_jira_config_is_incomplete_by_default(self):
        assert get_settings().jira_config().is_complete is False


class TestSettingsFromEnv:

    def test_load_from_env(self, monkeypatch, jira_env):
        monkeypatch.setenv("OLLAMA_URL", "http://gpu-box:11434/api/")
        monkeypatch.setenv("OLLAMA_MODEL", "mistral")
        monkeypatch.setenv("GENERATION_ENABLED", "false")
        monkeypatch.setenv("PORT", "8080")
        monkeypatch.setenv("LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.ollama_url == "http://gpu-box:11434/api"
        assert settings.ollama_model == "mistral"
        assert settings.generation_enabled is False
        assert settings.port == 8080
        assert settings.log_level == "DEBUG"

        config = settings.jira_config()
        assert config.is_complete is True
        assert config.base_url == "https://acme.atlassian.net"
        assert config.api_token == "secret-token"

    def test_load_from_dotenv_file(self, tmp_path):
        (tmp_path / ".env").write_text("JIRA_DOMAIN=from-file\nPORT=4000\n")

        settings = get_settings()

        assert settings.jira_domain == "from-file"
        assert settings.port == 4000

    def test_blank_model_is_unset(self, monkeypatch):
        monkeypatch.setenv("OLLAMA_MODEL", "  ")
        assert get_settings().ollama_model is None


class TestSettingsValidation:

    @pytest.mark.parametrize(
        "name,value",
        [
            ("OLLAMA_URL", "localhost:11434"),
            ("OLLAMA_URL", ""),
            ("OLLAMA_TIMEOUT_SECONDS", "0"),
            ("JIRA_TIMEOUT_SECONDS", "-1"),
            ("OLLAMA_TEMPERATURE", "2.5"),
            ("PORT", "0"),
            ("PORT", "70000"),
            ("LOG_LEVEL", "verbose"),
        ],
    )
    def test_invalid_values_rejected(self, monkeypatch, name, value):
        monkeypatch.setenv(name, value)

        with pytest.raises(ValidationError):
            get_settings()
