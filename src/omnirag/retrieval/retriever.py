"""
Scoped substring retrieval over the index store.

A query is matched case-insensitively against every chunk owned by a file
in the requested scope. When nothing matches, the first few chunks of the
scoped files are returned as a preview so the caller still has context to
work with. An empty scope always yields no results.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from omnirag.retrieval.store import ChunkRow, IndexStore

logger = logging.getLogger(__name__)

CONTEXT_SEPARATOR = "\n\n---\n\n"


@dataclass(frozen=True)
class SearchResult:
    """A chunk returned by a search."""

    text: str
    """The chunk text."""

    file_name: str
    """Display name of the owning file."""

    chunk_index: int
    """Sequence index of the chunk within its file."""

    file_id: str = ""
    """Identity of the owning file."""


class Retriever:
    """
    Execute queries against the index store.

    Example:
        >>> retriever = Retriever(store)
        >>> results = retriever.search("quarterly revenue", scope={"/docs/report.pdf"})
    """

    def __init__(self, store: IndexStore, fallback_limit: int = 5) -> None:
        """
        Initialize the retriever.

        Args:
            store: Index store to read from
            fallback_limit: Maximum number of preview chunks on a miss
        """
        self.store = store
        self.fallback_limit = fallback_limit

    def search(self, query: str, scope: Iterable[str]) -> list[SearchResult]:
        """
        Find chunks containing the query within the scoped files.

        Args:
            query: Text to look for (matched case-insensitively)
            scope: Identities of the files to search

        Returns:
            Matching chunks, or up to ``fallback_limit`` preview chunks in
            ascending sequence order if nothing matched or the query is blank
        """
        scope_ids = set(scope)
        if not scope_ids:
            return []

        # A blank query matches nothing and falls through to the preview
        needle = query.casefold()
        matches: list[SearchResult] = []
        if needle.strip():
            matches = [
                _to_result(row)
                for row in self.store.chunks_in_scope(scope_ids)
                if needle in row.text.casefold()
            ]
        if matches:
            logger.debug(f"Query matched {len(matches)} chunks across {len(scope_ids)} files")
            return matches

        logger.debug(f"No match for query, returning preview of {len(scope_ids)} files")
        return [
            _to_result(row)
            for row in self.store.first_chunks(scope_ids, self.fallback_limit)
        ]

    @staticmethod
    def format_context(results: list[SearchResult]) -> str:
        """Render results as a context block for a prompt."""
        return CONTEXT_SEPARATOR.join(
            f"File: {r.file_name}\nContent: {r.text}" for r in results
        )


def _to_result(row: ChunkRow) -> SearchResult:
    return SearchResult(
        text=row.text,
        file_name=row.file_name,
        chunk_index=row.chunk_index,
        file_id=row.file_id,
    )
