"""LLM clients and provider routing for omnirag."""

from omnirag.llm.messages import Message, Reply, Turn, build_messages, parse_action
from omnirag.llm.ollama_client import OllamaClient
from omnirag.llm.openai_client import OpenAIClient
from omnirag.llm.router import LLMProtocol, Mode, ProviderRouter, create_llm, resolve_mode

__all__ = [
    "Message",
    "Reply",
    "Turn",
    "build_messages",
    "parse_action",
    "OllamaClient",
    "OpenAIClient",
    "LLMProtocol",
    "Mode",
    "ProviderRouter",
    "create_llm",
    "resolve_mode",
]
