"""Ollama HTTP API client for local text generation.

This module provides an async wrapper around the Ollama API for:
- Probing whether the server is up
- Listing locally available models
- Running a non-streaming chat completion

Probes use a short timeout; the chat call uses a longer one since local
models can take tens of seconds to answer. There is no retry logic: a
failed call is reported to the caller, which falls back to rule-based
rewriting.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, Field, ValidationError


logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "http://localhost:11434/api"


class GenerationServiceError(Exception):
    """Raised when the generation service cannot produce a response.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code, when the server answered.
        cause: The underlying exception, if any.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.cause = cause
        super().__init__(message)


class ModelInfo(BaseModel):
    """A model available on the Ollama server."""

    name: str
    size: int = Field(default=0, ge=0)
    modified_at: Optional[datetime] = None

    @property
    def size_gb(self) -> float:
        return self.size / (1024 ** 3)


class OllamaClient:
    """Async Ollama API client.

    Attributes:
        base_url: Base URL of the Ollama API (default: http://localhost:11434/api).
        chat_timeout: Timeout in seconds for chat completions.
        probe_timeout: Timeout in seconds for ping and model listing.

    Example:
        >>> async with OllamaClient() as client:
        ...     models = await client.list_models()
        ...     content = await client.chat(
        ...         model=models[0].name,
        ...         system_prompt="Answer in JSON.",
        ...         user_message="Title: Login fails",
        ...     )
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        chat_timeout: float = 45.0,
        probe_timeout: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Ollama client.

        Args:
            base_url: Base URL of the Ollama API, including the /api prefix.
            chat_timeout: Timeout in seconds for chat completions.
            probe_timeout: Timeout in seconds for availability probes.
            transport: Optional httpx transport, used to stub the server.
        """
        self.base_url = base_url.rstrip("/")
        self.chat_timeout = chat_timeout
        self.probe_timeout = probe_timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={"Content-Type": "application/json"},
                timeout=self.chat_timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OllamaClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def ping(self) -> bool:
        """Check whether the Ollama server is responding.

        Tries the ping endpoint first and falls back to listing models,
        since older servers do not expose /ping.

        Returns:
            True if either probe succeeds, False otherwise.
        """
        try:
            response = await self.client.get("/ping", timeout=self.probe_timeout)
            if response.status_code < 400:
                return True
        except httpx.HTTPError as e:
            logger.debug("Ollama ping failed", extra={"error": str(e)})

        try:
            await self.list_models()
            return True
        except GenerationServiceError as e:
            logger.warning(
                "Ollama is not responding",
                extra={"base_url": self.base_url, "error": e.message},
            )
            return False

    async def list_models(self) -> List[ModelInfo]:
        """List models available on the server.

        Returns:
            Models in the order the server reports them.

        Raises:
            GenerationServiceError: If the server is unreachable or answers
                with an error.
        """
        try:
            response = await self.client.get("/tags", timeout=self.probe_timeout)
        except httpx.HTTPError as e:
            raise GenerationServiceError(
                f"Failed to list models: {str(e) or type(e).__name__}", cause=e
            )

        if response.status_code >= 400:
            raise GenerationServiceError(
                f"Model listing returned status {response.status_code}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationServiceError("Model listing returned invalid JSON", cause=e)

        if not isinstance(data, dict):
            raise GenerationServiceError("Model listing returned an unexpected payload")

        models = []
        for entry in data.get("models") or []:
            if not isinstance(entry, dict) or not entry.get("name"):
                continue
            try:
                models.append(ModelInfo.model_validate(entry))
            except ValidationError as e:
                logger.warning(
                    "Skipping malformed model entry",
                    extra={"entry_name": entry.get("name"), "error": str(e)},
                )

        logger.debug("Listed Ollama models", extra={"model_count": len(models)})
        return models

    async def chat(
        self,
        model: str,
        system_prompt: str,
        user_message: str,
        temperature: float = 0.7,
        options: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Run a non-streaming chat completion.

        Args:
            model: Name of the model to use.
            system_prompt: Content of the system message.
            user_message: Content of the user message.
            temperature: Sampling temperature.
            options: Extra model options passed through to Ollama.

        Returns:
            The assistant message content.

        Raises:
            GenerationServiceError: On timeout, transport failure, HTTP
                error or a response without message content.
        """
        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            "stream": False,
            "temperature": temperature,
            "options": {"temperature": temperature, **(options or {})},
        }

        logger.info(
            "Sending chat request to Ollama",
            extra={
                "model": model,
                "system_prompt_length": len(system_prompt),
                "user_message_length": len(user_message),
            },
        )

        try:
            response = await self.client.post(
                "/chat",
                json=payload,
                timeout=self.chat_timeout,
            )
        except httpx.TimeoutException as e:
            raise GenerationServiceError(
                f"Chat request timed out after {self.chat_timeout:g}s", cause=e
            )
        except httpx.HTTPError as e:
            raise GenerationServiceError(
                f"Chat request failed: {str(e) or type(e).__name__}", cause=e
            )

        if response.status_code >= 400:
            raise GenerationServiceError(
                f"Chat request returned status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationServiceError("Chat response was not JSON", cause=e)

        message = data.get("message") if isinstance(data, dict) else None
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise GenerationServiceError("Chat response had no message content")

        logger.info(
            "Received chat response from Ollama",
            extra={"model": model, "content_length": len(content)},
        )
        return content
