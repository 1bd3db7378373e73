"""Completion engines used by the extraction pipeline."""

import logging
from typing import Any

import httpx
import ollama

from .config import (
    DEFAULT_COMPLETION_URL,
    DEFAULT_EXTRACTION_TIMEOUT,
    DEFAULT_OLLAMA_BASE_URL,
    DEFAULT_OLLAMA_MODEL,
    DEFAULT_OLLAMA_TEMPERATURE,
)
from .exceptions import (
    EngineUnavailableError,
    ExtractionTimeoutError,
    MalformedResponseError,
)
from .interfaces import CompletionEngine

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "The request took too long. Please try again with a shorter input."


class HttpCompletionEngine(CompletionEngine):
    """
    Completion engine behind an HTTP extraction endpoint.

    The endpoint takes ``{"prompt": ...}`` and answers with
    ``[{"generated_text": ...}]``.
    """

    def __init__(
        self,
        url: str = DEFAULT_COMPLETION_URL,
        timeout: float = DEFAULT_EXTRACTION_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize HTTP completion engine.

        Args:
            url: Extraction endpoint URL
            timeout: Request timeout in seconds
            client: Optional shared httpx client (the engine closes only its own)
        """
        self.url = url
        self.timeout = timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def complete(self, prompt: str) -> str:
        """
        Post the prompt and return the generated text.

        Args:
            prompt: Full extraction prompt

        Returns:
            Generated text

        Raises:
            ExtractionTimeoutError: On client timeout or a 504 from the endpoint
            EngineUnavailableError: On connection failure or any other HTTP error
            MalformedResponseError: If the body is not the expected envelope
        """
        try:
            response = await self._client.post(self.url, json={"prompt": prompt})
        except httpx.TimeoutException as e:
            logger.error(f"Completion request timed out: {e}")
            raise ExtractionTimeoutError(TIMEOUT_MESSAGE) from e
        except httpx.TransportError as e:
            logger.error(f"Completion endpoint unreachable: {e}")
            raise EngineUnavailableError(
                f"Cannot connect to the task extraction service at {self.url}. "
                "Make sure the backend server is running."
            ) from e

        if response.status_code == httpx.codes.GATEWAY_TIMEOUT:
            raise ExtractionTimeoutError(TIMEOUT_MESSAGE)
        if response.is_error:
            detail = self._error_detail(response)
            logger.error(f"Completion endpoint returned {response.status_code}: {detail}")
            raise EngineUnavailableError(
                f"Task extraction service error ({response.status_code}): {detail}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponseError(
                "Task extraction service returned a non-JSON body. "
                "Please try rephrasing your input."
            ) from e

        return self._generated_text(payload)

    @staticmethod
    def _error_detail(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200] or response.reason_phrase
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return response.reason_phrase

    @staticmethod
    def _generated_text(payload: Any) -> str:
        entry = payload[0] if isinstance(payload, list) and payload else payload
        if isinstance(entry, dict) and isinstance(entry.get("generated_text"), str):
            return entry["generated_text"]
        raise MalformedResponseError(
            "Unexpected response format from the task extraction service. "
            "Please try rephrasing your input."
        )

    async def close(self) -> None:
        """Close the HTTP client if the engine created it."""
        if self._owns_client:
            await self._client.aclose()


class OllamaCompletionEngine(CompletionEngine):
    """Completion engine backed by a local Ollama model."""

    def __init__(
        self,
        model: str = DEFAULT_OLLAMA_MODEL,
        base_url: str = DEFAULT_OLLAMA_BASE_URL,
        temperature: float = DEFAULT_OLLAMA_TEMPERATURE,
    ) -> None:
        """
        Initialize Ollama completion engine.

        Args:
            model: Ollama model name
            base_url: Ollama service URL
            temperature: LLM temperature for generation
        """
        self.model = model
        self.base_url = base_url
        self.temperature = temperature
        self._client = ollama.AsyncClient(host=base_url)

    async def complete(self, prompt: str) -> str:
        """
        Run one chat turn against the model.

        Args:
            prompt: Full extraction prompt

        Returns:
            Model reply text

        Raises:
            EngineUnavailableError: If Ollama is unreachable or rejects the call
        """
        try:
            response = await self._client.chat(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                options={"temperature": self.temperature},
            )
        except ollama.ResponseError as e:
            logger.error(f"Ollama error: {e}")
            raise EngineUnavailableError(f"Ollama model error: {e.error}") from e
        except (ConnectionError, httpx.TransportError) as e:
            logger.error(f"Connection error: {e}")
            raise EngineUnavailableError(
                f"Cannot connect to Ollama at {self.base_url}. Is it running?"
            ) from e

        return response["message"]["content"]
