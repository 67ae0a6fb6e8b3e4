"""Ollama HTTP API client for local text generation."""

from jira_assist.ollama.client import GenerationServiceError, ModelInfo, OllamaClient

__all__ = [
    "GenerationServiceError",
    "ModelInfo",
    "OllamaClient",
]
