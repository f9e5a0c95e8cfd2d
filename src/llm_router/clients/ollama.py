"""
Ollama client for the fast local classification model.

Issues a single non-streaming ``/api/generate`` call and returns the raw
generated text. Parsing and validation are left to the caller.
"""

import logging
from typing import Any, Protocol

import httpx

from llm_router.exceptions import ClassificationError

logger = logging.getLogger(__name__)


class GenerationBackend(Protocol):
    """Single request/response text generation."""

    async def generate(
        self,
        model: str,
        prompt: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        ...


class OllamaClient:
    """
    Async client for the Ollama generate API.

    Models served by Ollama are local and free, which makes them a cheap
    first stage for classifying prompts before routing.
    """

    def __init__(
        self,
        host: str = "http://localhost:11434",
        timeout: float = 5.0,
    ) -> None:
        """
        Initialize Ollama client.

        Args:
            host: Ollama API host URL
            timeout: Request timeout in seconds, read on every request
        """
        self.host = host.rstrip("/")
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """Get or create the async HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def generate(
        self,
        model: str,
        prompt: str,
        options: dict[str, Any] | None = None,
    ) -> str:
        """
        Run one generation and return the raw text.

        Raises:
            httpx.HTTPError: On connection failure, timeout or error status
            ClassificationError: If the response body has no generated text
        """
        payload = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": options or {},
        }
        response = await self._get_client().post(
            f"{self.host}/api/generate", json=payload, timeout=self.timeout
        )
        response.raise_for_status()

        try:
            data = response.json()
        except ValueError as e:
            raise ClassificationError(f"Ollama returned non-JSON body: {e}") from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise ClassificationError("Ollama response has no generated text")
        return text.strip()

    async def check_connection(self) -> bool:
        """Test connection to Ollama API."""
        try:
            response = await self._get_client().get(f"{self.host}/api/version")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.debug(f"Ollama not reachable at {self.host}: {e}")
            return False

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None
