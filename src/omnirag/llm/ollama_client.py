"""
Async client for a local Ollama server.

The /api/generate endpoint takes a single prompt, so the message sequence
is flattened into one string (contents joined by blank lines, roles
dropped). /api/tags lists the installed models.
"""

import logging
from typing import Sequence
from urllib.parse import urljoin

import httpx
from pydantic import BaseModel, ValidationError

from omnirag.errors import BackendRejected, MalformedBackendResponse, TransportFailure
from omnirag.llm.messages import Message

logger = logging.getLogger(__name__)

BACKEND = "Ollama"


class GenerateResponse(BaseModel):
    response: str


class _InstalledModel(BaseModel):
    name: str


class TagsResponse(BaseModel):
    models: list[_InstalledModel]


def flatten_messages(messages: Sequence[Message]) -> str:
    """Join message contents into a single prompt."""
    return "\n\n".join(m.content for m in messages)


class OllamaClient:
    """LLM client for a locally hosted Ollama server."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434/",
        model: str = "llama-3-8b-instruct",
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self.model = model
        self.timeout = timeout

    async def generate(self, messages: Sequence[Message]) -> str:
        """
        Generate a completion for the flattened messages.

        Raises:
            TransportFailure: If the server cannot be reached
            BackendRejected: On any non-2xx status
            MalformedBackendResponse: If the body lacks a ``response`` string
        """
        payload = {
            "model": self.model,
            "prompt": flatten_messages(messages),
            "stream": False,
        }

        logger.debug(f"Dispatching prompt to {BACKEND} ({self.model})")
        response = await self._request("POST", "api/generate", json=payload)

        try:
            return GenerateResponse.model_validate_json(response.content).response
        except ValidationError as e:
            raise MalformedBackendResponse(BACKEND, "missing 'response' field") from e

    async def list_models(self) -> list[str]:
        """
        Names of the models installed on the server.

        Raises:
            TransportFailure, BackendRejected, MalformedBackendResponse
        """
        response = await self._request("GET", "api/tags")
        try:
            tags = TagsResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedBackendResponse(BACKEND, "missing 'models' list") from e
        return [m.name for m in tags.models]

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        url = urljoin(self.base_url, path)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransportFailure(BACKEND, e) from e

        if not response.is_success:
            raise BackendRejected(BACKEND, response.status_code)
        return response
