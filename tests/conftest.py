"""
Pytest configuration and shared fixtures.

Provides common fixtures for:
    - Settings isolated from the environment and .env files
    - An in-memory index store and a content extractor with stub OCR
    - A scripted LLM client and a router built on it
    - Sample files in temporary directories
"""

from pathlib import Path
from typing import Sequence

import pytest

from omnirag.llm.messages import Message


# =============================================================================
# Test Doubles
# =============================================================================


class StubOcr:
    """OCR engine returning fixed recognitions."""

    def __init__(self, recognitions: list[tuple[str, float]] | None = None) -> None:
        self.recognitions = recognitions or []
        self.calls: list[Path] = []

    def recognize(self, image_path: Path) -> list[tuple[str, float]]:
        self.calls.append(image_path)
        return list(self.recognitions)


class ScriptedLLM:
    """LLM client that returns queued replies (or raises queued errors)."""

    def __init__(self, *replies: str | Exception) -> None:
        self.replies = list(replies)
        self.calls: list[list[Message]] = []

    async def generate(self, messages: Sequence[Message]) -> str:
        self.calls.append(list(messages))
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def clean_env(monkeypatch):
    """Remove OMNIRAG_* variables so Settings only sees explicit values."""
    import os

    for key in list(os.environ):
        if key.startswith("OMNIRAG_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def settings(clean_env, tmp_path: Path):
    """Settings with storage under tmp_path and the local provider selected."""
    from omnirag.config import Settings

    return Settings(
        _env_file=None,
        provider="ollama",
        index_db_path=tmp_path / "index" / "omnirag.db",
        library_path=tmp_path / "library.json",
    )


# =============================================================================
# Component Fixtures
# =============================================================================


@pytest.fixture
def store():
    from omnirag.retrieval.store import IndexStore

    store = IndexStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def stub_ocr() -> StubOcr:
    return StubOcr([("Invoice total due", 0.92), ("smudge", 0.12)])


@pytest.fixture
def extractor(stub_ocr):
    from omnirag.retrieval.extractors import ContentExtractor

    return ContentExtractor(ocr=stub_ocr, min_confidence=0.4)


@pytest.fixture
def make_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def make_ocr():
    """Factory for StubOcr instances."""
    return StubOcr


@pytest.fixture
def scripted_llm() -> ScriptedLLM:
    return ScriptedLLM("Here is the answer. [ACTION: DRAFT_EMAIL]")


@pytest.fixture
def router(settings, scripted_llm):
    """Router whose local and remote clients are both the scripted LLM."""
    from omnirag.llm.router import ProviderRouter

    return ProviderRouter(settings, remote=scripted_llm, local=scripted_llm)


@pytest.fixture
def services(settings, extractor, router):
    from omnirag.services import build_services

    services = build_services(settings, extractor=extractor, router=router)
    yield services
    services.close()


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def sample_text() -> str:
    return "Hello\n\nWorld is great\n\nShort\n"


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """A small document tree with text files, a hidden file and an unsupported file."""
    docs = tmp_path / "docs"
    (docs / "sub").mkdir(parents=True)
    (docs / "notes.md").write_text(
        "# Meeting notes\nBudget approved for the third quarter\nok\n", encoding="utf-8"
    )
    (docs / "sub" / "plan.txt").write_text(
        "Launch scheduled for March 2025\nHire two more engineers\n", encoding="utf-8"
    )
    (docs / ".hidden.txt").write_text("This file should never be indexed\n", encoding="utf-8")
    (docs / "archive.zip").write_bytes(b"PK\x03\x04")
    return docs


@pytest.fixture
def corrupt_pdf(tmp_path: Path) -> Path:
    """A one-page PDF whose page object has been damaged."""
    from pypdf import PdfWriter

    path = tmp_path / "damaged.pdf"
    writer = PdfWriter()
    writer.add_blank_page(width=612, height=792)
    with open(path, "wb") as f:
        writer.write(f)
    data = path.read_bytes()
    path.write_bytes(data.replace(b"/Resources", b"/Resources 0.5 /Junk"))
    return path
