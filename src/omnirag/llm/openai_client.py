"""
Async client for the OpenAI chat completions API.

Sends the full message sequence and returns the first choice's content.
Transport, status and decoding problems are mapped to typed ProviderErrors;
nothing is retried.
"""

import logging
from typing import Optional, Sequence

import httpx
from pydantic import BaseModel, ValidationError

from omnirag.errors import (
    BackendRejected,
    InvalidCredential,
    MalformedBackendResponse,
    TransportFailure,
)
from omnirag.llm.messages import Message

logger = logging.getLogger(__name__)

BACKEND = "OpenAI"


class _ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str


class _Choice(BaseModel):
    message: _ChoiceMessage


class ChatCompletion(BaseModel):
    """Subset of the chat completions response body that is used."""

    choices: list[_Choice]


class OpenAIClient:
    """LLM client for the OpenAI (or an OpenAI-compatible) endpoint."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        endpoint_url: str = "https://api.openai.com/v1/chat/completions",
        timeout: float = 120.0,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: Bearer credential; calls fail fast when empty
            model: Model name sent with each request
            endpoint_url: Full URL to the /v1/chat/completions endpoint
            timeout: Transport timeout in seconds
        """
        self.api_key = api_key
        self.model = model
        self.endpoint_url = endpoint_url
        self.timeout = timeout

    async def generate(self, messages: Sequence[Message]) -> str:
        """
        Send messages and return the generated text.

        Raises:
            InvalidCredential: If the API key is empty
            TransportFailure: On connection errors or timeouts
            BackendRejected: On any non-2xx status
            MalformedBackendResponse: If the body is not a chat completion
        """
        if not self.api_key:
            raise InvalidCredential(BACKEND)

        payload = {
            "model": self.model,
            "messages": [m.to_dict() for m in messages],
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        logger.debug(f"Dispatching {len(messages)} messages to {BACKEND} ({self.model})")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.endpoint_url, json=payload, headers=headers)
        except httpx.TransportError as e:
            raise TransportFailure(BACKEND, e) from e

        if not response.is_success:
            raise BackendRejected(BACKEND, response.status_code, _error_detail(response))

        try:
            completion = ChatCompletion.model_validate_json(response.content)
        except ValidationError as e:
            raise MalformedBackendResponse(BACKEND, f"{e.error_count()} validation errors") from e

        if not completion.choices:
            raise MalformedBackendResponse(BACKEND, "no choices")

        return completion.choices[0].message.content


def _error_detail(response: httpx.Response) -> Optional[str]:
    """Pull the provider's error message out of an error body, if any."""
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            return error.get("message")
        if isinstance(error, str):
            return error
    return None
