"""
Component wiring shared by the CLI and the API.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from omnirag.chat.service import ChatService
from omnirag.chat.session import SessionStore
from omnirag.config import Settings, get_settings
from omnirag.library.projects import ProjectLibrary
from omnirag.library.sources import GlobalSourceLibrary
from omnirag.library.storage import KeyValueStore
from omnirag.llm.router import ProviderRouter
from omnirag.retrieval.access import OpenAccessBroker
from omnirag.retrieval.extractors import ContentExtractor, RapidOcrEngine
from omnirag.retrieval.indexer import BatchIndexer
from omnirag.retrieval.retriever import Retriever
from omnirag.retrieval.store import IndexStore
from omnirag.tasks.quiz_store import QuizStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    store: IndexStore
    extractor: ContentExtractor
    indexer: BatchIndexer
    retriever: Retriever
    router: ProviderRouter
    library: ProjectLibrary
    sources: GlobalSourceLibrary
    quizzes: QuizStore
    sessions: SessionStore
    chat: ChatService

    def close(self) -> None:
        for closeable in (self.store, self.sources, self.quizzes, self.sessions):
            closeable.close()


def build_services(
    settings: Optional[Settings] = None,
    extractor: Optional[ContentExtractor] = None,
    router: Optional[ProviderRouter] = None,
) -> Services:
    """
    Construct every component from settings.

    All SQLite-backed components share ``index_db_path``; the project
    library lives in its own JSON file at ``library_path``.

    Args:
        settings: Application settings (defaults to the cached settings)
        extractor: Override for the content extractor (tests)
        router: Override for the provider router (tests)
    """
    settings = settings or get_settings()
    db_path = settings.index_db_path

    extractor = extractor or ContentExtractor(
        ocr=RapidOcrEngine(),
        broker=OpenAccessBroker(),
        min_confidence=settings.ocr_min_confidence,
    )
    store = IndexStore(db_path)
    indexer = BatchIndexer(
        extractor,
        store,
        min_length=settings.chunk_min_length,
        workers=settings.index_workers,
    )
    retriever = Retriever(store, fallback_limit=settings.fallback_limit)
    router = router or ProviderRouter(settings)
    library = ProjectLibrary(KeyValueStore(settings.library_path), extractor)
    sources = GlobalSourceLibrary(db_path, extractor)
    sessions = SessionStore(db_path)

    logger.debug(f"Services built (db={db_path}, library={settings.library_path})")
    return Services(
        settings=settings,
        store=store,
        extractor=extractor,
        indexer=indexer,
        retriever=retriever,
        router=router,
        library=library,
        sources=sources,
        quizzes=QuizStore(db_path),
        sessions=sessions,
        chat=ChatService(router, retriever, extractor, library, sources=sources, store=sessions),
    )
