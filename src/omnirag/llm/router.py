"""
Provider routing.

Decides from the provider configuration whether a call goes to the primary
cloud provider (remote) or to the local Ollama server, and exposes a single
``generate`` operation over both backends.

Only the primary cloud provider participates in mode resolution: any other
configured provider, or OpenAI without a credential, resolves to local.
"""

import logging
from enum import Enum
from typing import Iterable, Optional, Protocol, Sequence

from omnirag.config import ProviderConfig, Settings
from omnirag.errors import ProviderError
from omnirag.llm.messages import (
    Message,
    Reply,
    Turn,
    build_messages,
    build_system_prompt,
    parse_action,
)
from omnirag.llm.ollama_client import OllamaClient
from omnirag.llm.openai_client import OpenAIClient

logger = logging.getLogger(__name__)

PRIMARY_CLOUD_PROVIDER = "openai"
LOCAL_PROVIDERS = frozenset({"ollama", "local"})

PROVIDER_MODELS: dict[str, list[str]] = {
    "openai": ["gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo"],
    "anthropic": [
        "claude-3-5-sonnet-20241022",
        "claude-3-5-haiku-20241022",
        "claude-3-opus-20240229",
    ],
    "gemini": ["gemini-2.0-flash-exp", "gemini-1.5-pro", "gemini-1.5-flash"],
}


class Mode(str, Enum):
    """Backend family for a call."""

    REMOTE = "remote"
    LOCAL = "local"


class LLMProtocol(Protocol):
    """Protocol that all LLM clients must implement."""

    async def generate(self, messages: Sequence[Message]) -> str:
        """Send messages to the backend and return the generated text."""
        ...


def resolve_mode(config: ProviderConfig) -> Mode:
    """
    Pick remote or local mode.

    Remote only when the primary cloud provider is selected and its
    credential is present and non-empty.
    """
    if config.provider == PRIMARY_CLOUD_PROVIDER and config.credential_for(PRIMARY_CLOUD_PROVIDER):
        return Mode.REMOTE
    return Mode.LOCAL


def create_llm(mode: Mode, settings: Settings, config: Optional[ProviderConfig] = None) -> LLMProtocol:
    """
    Create an LLM client for a mode.

    Args:
        mode: Resolved backend family
        settings: Endpoints, defaults and timeouts
        config: Provider selection (defaults to the one in settings)

    Returns:
        Client implementing LLMProtocol
    """
    config = config or settings.provider_config()

    if mode is Mode.REMOTE:
        return OpenAIClient(
            api_key=config.credential_for(PRIMARY_CLOUD_PROVIDER),
            model=config.model or settings.openai_default_model,
            endpoint_url=settings.openai_url,
            timeout=settings.provider_timeout,
        )

    # The selected model only applies locally when a local provider is chosen
    model = config.model if config.provider in LOCAL_PROVIDERS and config.model else settings.ollama_default_model
    return OllamaClient(
        base_url=settings.ollama_url,
        model=model,
        timeout=settings.provider_timeout,
    )


class ProviderRouter:
    """
    Uniform generate operation over the remote and local backends.

    Example:
        >>> router = ProviderRouter(settings)
        >>> text = await router.generate(router.mode(), SYSTEM, context, history)
    """

    def __init__(
        self,
        settings: Settings,
        remote: Optional[LLMProtocol] = None,
        local: Optional[LLMProtocol] = None,
    ) -> None:
        """
        Initialize the router.

        Args:
            settings: Provider configuration source
            remote: Client override for remote mode (tests)
            local: Client override for local mode (tests)
        """
        self.settings = settings
        self._clients: dict[Mode, Optional[LLMProtocol]] = {
            Mode.REMOTE: remote,
            Mode.LOCAL: local,
        }

    def mode(self) -> Mode:
        """Resolve the mode from the current provider configuration."""
        config = self.settings.provider_config()
        mode = resolve_mode(config)
        if mode is Mode.LOCAL and config.provider not in LOCAL_PROVIDERS:
            logger.warning(
                f"Provider '{config.provider}' does not gate remote mode; routing to local backend"
            )
        return mode

    def client_for(self, mode: Mode) -> LLMProtocol:
        client = self._clients.get(mode)
        if client is None:
            client = create_llm(mode, self.settings)
            self._clients[mode] = client
        return client

    async def generate(
        self,
        mode: Mode,
        system_prompt: str,
        user_context: str,
        history: Sequence[Turn],
    ) -> str:
        """
        Assemble messages, dispatch to the backend for ``mode`` and return
        the trimmed output.

        Raises:
            ProviderError: Any typed backend failure; never retried
        """
        messages = build_messages(system_prompt, user_context, history)
        client = self.client_for(mode)

        logger.info(f"Provider call dispatched ({mode.value}, {len(messages)} messages)")
        try:
            text = await client.generate(messages)
        except ProviderError as e:
            logger.warning(f"Provider call failed ({e.kind}): {e.message}")
            raise

        logger.info(f"Provider call succeeded ({len(text)} chars)")
        return text.strip()

    async def chat(
        self,
        history: Sequence[Turn],
        context: str,
        files: Iterable[str] = (),
        system_prompt: Optional[str] = None,
    ) -> Reply:
        """
        Generate a conversational reply and split off its suggested action.

        Args:
            history: Conversation so far, ending with the user's message
            context: Assembled file and library context (may be empty)
            files: Names of attached files, used to pick the system prompt
            system_prompt: Overrides the file-type based prompt when set
        """
        prompt = system_prompt or build_system_prompt(files)
        text = await self.generate(self.mode(), prompt, context, history)
        return parse_action(text)

    async def complete(self, system_prompt: str, prompt: str) -> str:
        """Single-shot generation used by the specialized tasks."""
        return await self.generate(self.mode(), system_prompt, "", [Turn(prompt, is_user=True)])
