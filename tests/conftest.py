"""Pytest configuration for all tests."""

import pytest


SETTINGS_ENV_VARS = (
    "JIRA_DOMAIN",
    "JIRA_EMAIL",
    "JIRA_TOKEN",
    "JIRA_TIMEOUT_SECONDS",
    "OLLAMA_URL",
    "OLLAMA_MODEL",
    "OLLAMA_TIMEOUT_SECONDS",
    "OLLAMA_PROBE_TIMEOUT_SECONDS",
    "OLLAMA_TEMPERATURE",
    "GENERATION_ENABLED",
    "HOST",
    "PORT",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_settings_env(monkeypatch, tmp_path):
    """Isolate every test from the developer's environment and .env file."""
    for name in SETTINGS_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def jira_env(monkeypatch):
    """Set Jira credentials in the environment."""
    monkeypatch.setenv("JIRA_DOMAIN", "acme")
    monkeypatch.setenv("JIRA_EMAIL", "dev@acme.io")
    monkeypatch.setenv("JIRA_TOKEN", "secret-token")
