"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables (prefixed with
``OMNIRAG_``) with sensible defaults. Use a .env file for local development.

Environment Variables:
    OMNIRAG_PROVIDER: Selected language-model provider (openai, ollama, ...)
    OMNIRAG_MODEL: Selected model name for the provider
    OMNIRAG_OPENAI_API_KEY: Credential for the primary cloud provider
    OMNIRAG_OLLAMA_URL: Base URL of the local generation server
    OMNIRAG_INDEX_DB_PATH: SQLite file backing the index store
    OMNIRAG_LIBRARY_PATH: JSON file backing the project library
    OMNIRAG_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
    OMNIRAG_API_CORS_ORIGINS: JSON list of browser origins allowed to call the API
    OMNIRAG_API_ATTACHMENT_ROOTS: JSON list of directories /chat may read attachments from
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class ProviderConfig:
    """Provider selection as read from settings. Never mutated by the core."""

    provider: str
    """Selected provider name (e.g. 'openai', 'ollama')."""

    model: str
    """Selected model name."""

    credentials: dict[str, str] = field(default_factory=dict)
    """Per-provider credential strings, keyed by provider name."""

    def credential_for(self, provider: str) -> str:
        return self.credentials.get(provider, "")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="OMNIRAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Provider Selection
    # ==========================================================================
    provider: str = Field(
        default="ollama",
        description="Selected language-model provider (openai, anthropic, gemini, ollama)",
    )
    model: Optional[str] = Field(
        default=None,
        description="Selected model name; provider default when unset",
    )

    # ==========================================================================
    # Credentials
    # ==========================================================================
    openai_api_key: Optional[SecretStr] = Field(
        default=None,
        description="OpenAI API key (required for remote mode)",
    )
    anthropic_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Anthropic API key",
    )
    gemini_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Google Gemini API key",
    )

    # ==========================================================================
    # Endpoints
    # ==========================================================================
    openai_url: str = Field(
        default="https://api.openai.com/v1/chat/completions",
        description="OpenAI-compatible chat completions endpoint",
    )
    openai_default_model: str = Field(
        default="gpt-4o-mini",
        description="Model used for OpenAI when no model is selected",
    )
    ollama_url: str = Field(
        default="http://localhost:11434/",
        description="Base URL of the local Ollama server",
    )
    ollama_default_model: str = Field(
        default="llama-3-8b-instruct",
        description="Model used for Ollama when no model is selected",
    )
    provider_timeout: float = Field(
        default=120.0,
        gt=0.0,
        description="Transport timeout in seconds for provider calls",
    )

    # ==========================================================================
    # Indexing Configuration
    # ==========================================================================
    index_db_path: Path = Field(
        default=Path("data/index/omnirag.db"),
        description="SQLite database for indexed files and chunks",
    )
    chunk_min_length: int = Field(
        default=10,
        ge=0,
        description="Lines at or below this many characters are not indexed",
    )
    index_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Threads used for extraction and chunking",
    )
    ocr_min_confidence: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="OCR recognitions at or below this confidence are discarded",
    )

    # ==========================================================================
    # Retrieval Configuration
    # ==========================================================================
    fallback_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Number of preview chunks returned when a search misses",
    )

    # ==========================================================================
    # Library Configuration
    # ==========================================================================
    library_path: Path = Field(
        default=Path("data/library.json"),
        description="JSON file holding the project library",
    )

    # ==========================================================================
    # API Configuration
    # ==========================================================================
    api_host: str = Field(
        default="127.0.0.1",
        description="Host to bind API server",
    )
    api_port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Port for API server",
    )
    api_cors_origins: list[str] = Field(
        default_factory=list,
        description="Browser origins allowed to call the API (none by default)",
    )
    api_attachment_roots: list[Path] = Field(
        default_factory=list,
        description="Directories whose files /chat may read as attachments, besides indexed files",
    )

    # ==========================================================================
    # Observability Configuration
    # ==========================================================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )

    # ==========================================================================
    # Validators
    # ==========================================================================
    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, v: str) -> str:
        """Provider names are matched case-insensitively."""
        return v.strip().lower()

    @field_validator("index_db_path", "library_path")
    @classmethod
    def resolve_path(cls, v: Path) -> Path:
        """Resolve paths to absolute paths."""
        return v.expanduser().resolve()

    @field_validator("api_attachment_roots")
    @classmethod
    def resolve_roots(cls, v: list[Path]) -> list[Path]:
        return [p.expanduser().resolve() for p in v]

    # ==========================================================================
    # Computed Properties
    # ==========================================================================
    @property
    def openai_api_key_value(self) -> str:
        """Get the actual OpenAI key value, empty when unset."""
        if self.openai_api_key:
            return self.openai_api_key.get_secret_value()
        return ""

    def provider_config(self) -> ProviderConfig:
        """Snapshot the provider selection and credentials."""
        credentials = {}
        for name, secret in (
            ("openai", self.openai_api_key),
            ("anthropic", self.anthropic_api_key),
            ("gemini", self.gemini_api_key),
        ):
            credentials[name] = secret.get_secret_value() if secret else ""

        return ProviderConfig(
            provider=self.provider,
            model=self.model or "",
            credentials=credentials,
        )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure settings are only loaded once.
    Call `get_settings.cache_clear()` to reload settings.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
