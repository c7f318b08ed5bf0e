"""Unit tests for llm.openai_client module."""

import json

import httpx
import pytest
from pytest_httpx import HTTPXMock

from omnirag.errors import (
    BackendRejected,
    InvalidCredential,
    MalformedBackendResponse,
    TransportFailure,
)
from omnirag.llm.messages import Message
from omnirag.llm.openai_client import OpenAIClient


URL = "https://api.openai.com/v1/chat/completions"
MESSAGES = [Message("system", "Be brief."), Message("user", "Hi")]


@pytest.fixture
def client() -> OpenAIClient:
    return OpenAIClient(api_key="sk-test", model="gpt-4o-mini", endpoint_url=URL, timeout=5.0)


@pytest.mark.unit
class TestOpenAIClient:
    """Tests for OpenAIClient.generate."""

    @pytest.mark.asyncio
    async def test_returns_first_choice(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            url=URL,
            method="POST",
            json={
                "choices": [
                    {"message": {"role": "assistant", "content": "Hello there"}},
                    {"message": {"role": "assistant", "content": "ignored"}},
                ]
            },
        )

        assert await client.generate(MESSAGES) == "Hello there"

    @pytest.mark.asyncio
    async def test_request_shape(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(json={"choices": [{"message": {"content": "ok"}}]})

        await client.generate(MESSAGES)

        request = httpx_mock.get_requests()[0]
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert json.loads(request.content) == {
            "model": "gpt-4o-mini",
            "messages": [
                {"role": "system", "content": "Be brief."},
                {"role": "user", "content": "Hi"},
            ],
        }

    @pytest.mark.asyncio
    async def test_empty_key_fails_without_request(self, httpx_mock: HTTPXMock):
        client = OpenAIClient(api_key="", endpoint_url=URL)

        with pytest.raises(InvalidCredential):
            await client.generate(MESSAGES)

        assert httpx_mock.get_requests() == []

    @pytest.mark.asyncio
    async def test_error_status_is_rejected(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(
            status_code=401,
            json={"error": {"message": "Incorrect API key provided"}},
        )

        with pytest.raises(BackendRejected) as exc_info:
            await client.generate(MESSAGES)

        assert exc_info.value.status_code == 401
        assert "Incorrect API key provided" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_server_error_with_html_body(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(status_code=502, text="<html>Bad gateway</html>")

        with pytest.raises(BackendRejected) as exc_info:
            await client.generate(MESSAGES)

        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_malformed_body(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(json={"unexpected": True})

        with pytest.raises(MalformedBackendResponse):
            await client.generate(MESSAGES)

    @pytest.mark.asyncio
    async def test_empty_choices(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_response(json={"choices": []})

        with pytest.raises(MalformedBackendResponse):
            await client.generate(MESSAGES)

    @pytest.mark.asyncio
    async def test_transport_error(self, client, httpx_mock: HTTPXMock):
        httpx_mock.add_exception(httpx.ConnectError("Connection refused"))

        with pytest.raises(TransportFailure):
            await client.generate(MESSAGES)
