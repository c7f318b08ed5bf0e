"""
Typed failures raised by the indexing, library and provider layers.

Every error carries a user-facing ``message`` so callers (CLI, API, chat
service) can surface it without knowing the concrete type.
"""

from typing import Optional


class OmniError(Exception):
    """Base class for all omnirag failures."""

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# =============================================================================
# Indexing / persistence
# =============================================================================


class UnreadableFile(OmniError):
    """Unsupported file type, PDF without text, or OCR below threshold."""

    kind = "unreadable_file"

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Cannot read {path}: {reason}")
        self.path = path
        self.reason = reason


class PersistenceFailure(OmniError):
    """A store write did not complete."""

    kind = "persistence_failure"


class CorruptRecord(OmniError):
    """Stored data exists but cannot be decoded."""

    kind = "corrupt_record"


# =============================================================================
# Provider failures
# =============================================================================


class ProviderError(OmniError):
    """Base class for failures of a language-model call."""

    kind = "provider_error"


class InvalidCredential(ProviderError):
    """Remote call attempted with a missing or empty credential."""

    kind = "invalid_credential"

    def __init__(self, provider: str) -> None:
        super().__init__(
            f"Invalid API Key for {provider}. "
            "Please check your API key in settings and try again."
        )
        self.provider = provider


class TransportFailure(ProviderError):
    """Network or connection error talking to a backend."""

    kind = "transport_failure"

    def __init__(self, backend: str, cause: Exception) -> None:
        super().__init__(
            f"Network Error: could not connect to {backend}. ({cause})"
        )
        self.backend = backend
        self.cause = cause


class BackendRejected(ProviderError):
    """Backend answered with a non-success status code."""

    kind = "backend_rejected"

    def __init__(self, backend: str, status_code: int, detail: Optional[str] = None) -> None:
        message = f"{backend} returned HTTP {status_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.backend = backend
        self.status_code = status_code


class MalformedBackendResponse(ProviderError):
    """Response body does not decode to the expected shape."""

    kind = "malformed_response"

    def __init__(self, backend: str, detail: str) -> None:
        super().__init__(
            f"{backend} returned an invalid or empty response ({detail}). "
            "This might be a temporary service issue. Please try again."
        )
        self.backend = backend


class StructuredDecodeFailure(ProviderError):
    """Generated text did not match the required JSON schema."""

    kind = "structured_decode_failure"
