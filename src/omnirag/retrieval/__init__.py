"""
Document indexing and retrieval.

Components:
    - access: Scoped acquire/release around file reads
    - extractors: Text, PDF and OCR content extraction
    - chunker: Line-based chunking of extracted text
    - store: SQLite index of files and their chunks
    - indexer: Parallel extraction with a single-writer commit stage
    - retriever: Scoped substring search with preview fallback
"""

from omnirag.retrieval.chunker import chunk_text
from omnirag.retrieval.extractors import ContentExtractor, RapidOcrEngine
from omnirag.retrieval.indexer import BatchIndexer, IndexReport, file_identity
from omnirag.retrieval.retriever import Retriever, SearchResult
from omnirag.retrieval.store import Chunk, IndexedFile, IndexStore

__all__ = [
    "chunk_text",
    "ContentExtractor",
    "RapidOcrEngine",
    "BatchIndexer",
    "IndexReport",
    "file_identity",
    "Retriever",
    "SearchResult",
    "Chunk",
    "IndexedFile",
    "IndexStore",
]
