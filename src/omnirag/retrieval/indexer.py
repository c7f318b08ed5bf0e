"""
Batch indexing of local files.

Extraction and chunking of a batch run on a thread pool; the results are
committed to the index store one file at a time by the calling thread,
which is the only writer. A file that fails to extract is skipped and the
rest of the batch continues.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from omnirag.errors import PersistenceFailure, UnreadableFile
from omnirag.retrieval.chunker import DEFAULT_MIN_LENGTH, chunk_text
from omnirag.retrieval.extractors import ContentExtractor, is_supported
from omnirag.retrieval.store import IndexStore

logger = logging.getLogger(__name__)


@dataclass
class IndexReport:
    """Outcome of indexing a batch."""

    indexed: dict[str, int] = field(default_factory=dict)
    """Files stored, mapped to their chunk count."""

    unreadable: dict[str, str] = field(default_factory=dict)
    """Files that produced no text, mapped to the reason. Prior entries are removed."""

    failed: dict[str, str] = field(default_factory=dict)
    """Files whose extraction crashed or whose index update could not be persisted.

    Each file appears in exactly one of indexed, unreadable and failed.
    """

    @property
    def total_chunks(self) -> int:
        return sum(self.indexed.values())


@dataclass(frozen=True)
class _Extracted:
    file_id: str
    file_name: str
    chunks: list[str]
    error: Optional[UnreadableFile] = None


def file_identity(path: Path) -> str:
    """Canonical locator used as the index key for a local file."""
    return str(Path(path).expanduser().resolve())


def discover_files(root: Path, recursive: bool = True) -> list[Path]:
    """
    Find supported files under a directory.

    Args:
        root: Directory to search
        recursive: Descend into subdirectories

    Returns:
        Sorted list of supported file paths (hidden files skipped)
    """
    pattern = "**/*" if recursive else "*"
    files = [
        p
        for p in root.glob(pattern)
        if p.is_file() and is_supported(p) and not any(part.startswith(".") for part in p.relative_to(root).parts)
    ]
    files.sort()
    return files


class BatchIndexer:
    """
    Index files into an IndexStore with parallel extraction.

    Example:
        >>> indexer = BatchIndexer(ContentExtractor(), store)
        >>> report = indexer.index_paths([Path("notes.md"), Path("scan.png")])
        >>> report.indexed
        {'/home/me/notes.md': 12}
    """

    def __init__(
        self,
        extractor: ContentExtractor,
        store: IndexStore,
        min_length: int = DEFAULT_MIN_LENGTH,
        workers: int = 4,
    ) -> None:
        self.extractor = extractor
        self.store = store
        self.min_length = min_length
        self.workers = workers

    def _extract(self, path: Path) -> _Extracted:
        file_id = file_identity(path)
        try:
            text = self.extractor.extract(path)
        except UnreadableFile as e:
            return _Extracted(file_id, path.name, [], error=e)
        return _Extracted(file_id, path.name, chunk_text(text, self.min_length))

    def index_paths(
        self,
        paths: Iterable[Path],
        on_progress: Optional[Callable[[str, int], None]] = None,
    ) -> IndexReport:
        """
        Extract, chunk and store a batch of files.

        Args:
            paths: Files to (re)index
            on_progress: Called with (file name, chunk count) after each commit

        Returns:
            IndexReport describing what was stored, skipped and failed
        """
        report = IndexReport()
        paths = [Path(p) for p in paths]
        if not paths:
            return report

        with ThreadPoolExecutor(max_workers=self.workers, thread_name_prefix="extract") as pool:
            futures = {pool.submit(self._extract, p): p for p in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    item = future.result()
                except Exception as e:
                    logger.error(f"Extraction crashed for {path.name}: {e}")
                    report.failed[file_identity(path)] = f"extraction crashed: {e}"
                    continue
                self._commit(item, report)
                if on_progress is not None:
                    on_progress(item.file_name, report.indexed.get(item.file_id, 0))

        logger.info(
            f"Indexed {len(report.indexed)} files ({report.total_chunks} chunks), "
            f"{len(report.unreadable)} unreadable, {len(report.failed)} failed"
        )
        return report

    def index_directory(self, root: Path, recursive: bool = True) -> IndexReport:
        """Index every supported file under a directory."""
        return self.index_paths(discover_files(root, recursive))

    def _commit(self, item: _Extracted, report: IndexReport) -> None:
        if item.error is not None:
            logger.warning(item.error.message)

        try:
            stored = self.store.reindex(item.file_id, item.chunks, file_name=item.file_name)
        except PersistenceFailure as e:
            logger.error(e.message)
            report.failed[item.file_id] = e.message
            return

        if stored is not None:
            report.indexed[item.file_id] = len(stored.chunks)
        elif item.error is not None:
            report.unreadable[item.file_id] = item.error.reason
        else:
            report.unreadable[item.file_id] = "no qualifying lines"
