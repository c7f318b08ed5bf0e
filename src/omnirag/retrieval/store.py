"""
SQLite-backed index store.

Maps a file identity (resolved path or URI) to its ordered chunks. A file is
always replaced as a whole: the previous entry and its chunks are deleted
and the new version inserted within one transaction, so readers observe
either the old or the new version of a file and never a mix.
"""

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Optional, Sequence

from omnirag.errors import PersistenceFailure

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS indexed_files (
  file_id TEXT PRIMARY KEY,
  file_name TEXT NOT NULL,
  last_indexed TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS chunks (
  file_id TEXT NOT NULL REFERENCES indexed_files(file_id) ON DELETE CASCADE,
  chunk_index INTEGER NOT NULL,
  text TEXT NOT NULL,
  PRIMARY KEY (file_id, chunk_index)
);

CREATE INDEX IF NOT EXISTS idx_chunks_order ON chunks(chunk_index);
"""


@dataclass(frozen=True)
class Chunk:
    """A retrievable unit of text, ordered within its file."""

    file_id: str
    chunk_index: int
    text: str


@dataclass(frozen=True)
class IndexedFile:
    """An indexed file and its chunks in sequence order."""

    file_id: str
    file_name: str
    last_indexed: datetime
    chunks: tuple[Chunk, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ChunkRow:
    """A chunk joined with its owning file's display name."""

    file_id: str
    file_name: str
    chunk_index: int
    text: str


def display_name(file_id: str) -> str:
    """Last path component of a path or URI."""
    return file_id.rstrip("/").rsplit("/", 1)[-1] or file_id


class IndexStore:
    """
    Persistent repository of IndexedFile -> Chunk relationships.

    All access goes through a single connection guarded by a lock, which
    serializes writes and keeps each replacement atomic for readers.

    Example:
        >>> store = IndexStore(Path("data/index/omnirag.db"))
        >>> store.reindex("/docs/notes.txt", ["First qualifying line"])
        >>> store.lookup_by_identity("/docs/notes.txt").chunks[0].chunk_index
        0
    """

    def __init__(self, db_path: Path | str) -> None:
        """
        Open (and create if needed) the store.

        Args:
            db_path: SQLite file path, or ":memory:"
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    # ==========================================================================
    # Writes
    # ==========================================================================

    def reindex(
        self,
        file_id: str,
        chunks: Sequence[str],
        file_name: Optional[str] = None,
    ) -> Optional[IndexedFile]:
        """
        Replace the stored version of a file with new chunks.

        Any previous entry for ``file_id`` is deleted (with its chunks) and
        the new entry inserted in the same transaction. Chunk indices are
        assigned 0..N-1 in sequence order. An empty chunk list only removes
        the previous entry.

        Args:
            file_id: Canonical file locator
            chunks: Chunk texts in original order
            file_name: Display name (defaults to the last path component)

        Returns:
            The stored IndexedFile, or None when chunks was empty

        Raises:
            PersistenceFailure: If the transaction could not be committed
        """
        name = file_name or display_name(file_id)
        now = datetime.now(timezone.utc)

        try:
            with self._lock, self._conn:
                self._conn.execute("DELETE FROM indexed_files WHERE file_id = ?", (file_id,))
                if not chunks:
                    logger.info(f"Removed {name} from index (no chunks)")
                    return None

                self._conn.execute(
                    "INSERT INTO indexed_files (file_id, file_name, last_indexed) VALUES (?, ?, ?)",
                    (file_id, name, now.isoformat()),
                )
                self._conn.executemany(
                    "INSERT INTO chunks (file_id, chunk_index, text) VALUES (?, ?, ?)",
                    [(file_id, i, text) for i, text in enumerate(chunks)],
                )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to index {name}: {e}") from e

        logger.info(f"Indexed {name}: {len(chunks)} chunks")
        return IndexedFile(
            file_id=file_id,
            file_name=name,
            last_indexed=now,
            chunks=tuple(Chunk(file_id, i, text) for i, text in enumerate(chunks)),
        )

    def delete(self, file_id: str) -> bool:
        """
        Remove a file and its chunks.

        Returns:
            True if an entry was removed

        Raises:
            PersistenceFailure: If the delete could not be committed
        """
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    "DELETE FROM indexed_files WHERE file_id = ?", (file_id,)
                )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to delete {file_id}: {e}") from e
        return cursor.rowcount > 0

    # ==========================================================================
    # Reads
    # ==========================================================================

    def lookup_by_identity(self, file_id: str) -> Optional[IndexedFile]:
        """Fetch a file with its chunks, or None if it is not indexed."""
        with self._lock:
            row = self._conn.execute(
                "SELECT file_id, file_name, last_indexed FROM indexed_files WHERE file_id = ?",
                (file_id,),
            ).fetchone()
            if row is None:
                return None
            chunk_rows = self._conn.execute(
                "SELECT chunk_index, text FROM chunks WHERE file_id = ? ORDER BY chunk_index",
                (file_id,),
            ).fetchall()

        return IndexedFile(
            file_id=row["file_id"],
            file_name=row["file_name"],
            last_indexed=datetime.fromisoformat(row["last_indexed"]),
            chunks=tuple(Chunk(file_id, r["chunk_index"], r["text"]) for r in chunk_rows),
        )

    def chunks_for(self, file_id: str) -> list[Chunk]:
        """Chunks of one file in sequence order ([] if not indexed)."""
        indexed = self.lookup_by_identity(file_id)
        return list(indexed.chunks) if indexed else []

    def list_files(self) -> list[IndexedFile]:
        """All indexed files (without chunks), ordered by identity."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT file_id, file_name, last_indexed FROM indexed_files ORDER BY file_id"
            ).fetchall()
        return [
            IndexedFile(
                file_id=r["file_id"],
                file_name=r["file_name"],
                last_indexed=datetime.fromisoformat(r["last_indexed"]),
            )
            for r in rows
        ]

    def count_chunks(self) -> int:
        with self._lock:
            return int(self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()[0])

    def chunks_in_scope(self, scope: Iterable[str]) -> list[ChunkRow]:
        """All chunks owned by files in scope, in store iteration order."""
        ids = list(scope)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT c.file_id, f.file_name, c.chunk_index, c.text
                FROM chunks c JOIN indexed_files f ON f.file_id = c.file_id
                WHERE c.file_id IN ({placeholders})
                ORDER BY c.file_id, c.chunk_index
                """,
                ids,
            ).fetchall()
        return [_to_row(r) for r in rows]

    def first_chunks(self, scope: Iterable[str], limit: int) -> list[ChunkRow]:
        """The lowest-indexed chunks across files in scope."""
        ids = list(scope)
        if not ids or limit <= 0:
            return []
        placeholders = ",".join("?" for _ in ids)
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT c.file_id, f.file_name, c.chunk_index, c.text
                FROM chunks c JOIN indexed_files f ON f.file_id = c.file_id
                WHERE c.file_id IN ({placeholders})
                ORDER BY c.chunk_index, c.file_id
                LIMIT ?
                """,
                [*ids, limit],
            ).fetchall()
        return [_to_row(r) for r in rows]


def _to_row(row: sqlite3.Row) -> ChunkRow:
    return ChunkRow(
        file_id=row["file_id"],
        file_name=row["file_name"],
        chunk_index=row["chunk_index"],
        text=row["text"],
    )
