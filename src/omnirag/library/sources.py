"""
Global source library.

Holds durable references to files the application does not own. A
reference is an opaque token that can be resolved back to a readable path
later; the file's bytes are read on demand, never cached. When the
referenced file was renamed or replaced, resolution still succeeds but the
token is reported stale (logged, not fatal).
"""

import base64
import json
import logging
import os
import sqlite3
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from omnirag.errors import CorruptRecord, PersistenceFailure, UnreadableFile
from omnirag.retrieval.extractors import ContentExtractor

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS global_sources (
  token BLOB PRIMARY KEY,
  file_name TEXT NOT NULL,
  date_added TEXT NOT NULL
);
"""


@dataclass(frozen=True)
class LibraryFileRef:
    """A re-resolvable reference to a file outside the app's control."""

    token: bytes
    file_name: str
    date_added: datetime


@dataclass(frozen=True)
class Resolution:
    path: Path
    stale: bool


class BookmarkCodec:
    """
    Encode a path into an opaque token and resolve it back.

    The token records the path together with the file's device and inode,
    which lets a rename inside the same directory be followed.
    """

    def encode(self, path: Path) -> bytes:
        path = Path(path).expanduser().resolve()
        st = path.stat()
        payload = {"path": str(path), "dev": st.st_dev, "ino": st.st_ino}
        return base64.urlsafe_b64encode(json.dumps(payload, sort_keys=True).encode("utf-8"))

    def decode(self, token: bytes) -> dict:
        try:
            payload = json.loads(base64.urlsafe_b64decode(token))
        except (ValueError, TypeError) as e:
            raise CorruptRecord(f"Bookmark token cannot be decoded: {e}") from e
        if not isinstance(payload, dict) or "path" not in payload:
            raise CorruptRecord("Bookmark token has no path")
        return payload

    def resolve(self, token: bytes) -> Optional[Resolution]:
        """
        Resolve a token to a path.

        Returns:
            Resolution (stale when the file moved or was replaced), or None
            when the file can no longer be found

        Raises:
            CorruptRecord: If the token is not a valid bookmark
        """
        payload = self.decode(token)
        path = Path(payload["path"])
        identity = (payload.get("dev"), payload.get("ino"))

        if path.exists():
            st = path.stat()
            return Resolution(path=path, stale=(st.st_dev, st.st_ino) != identity)

        # Follow a rename within the original directory
        parent = path.parent
        if parent.is_dir():
            with os.scandir(parent) as entries:
                for entry in entries:
                    if not entry.is_file():
                        continue
                    st = entry.stat()
                    if (st.st_dev, st.st_ino) == identity:
                        return Resolution(path=Path(entry.path), stale=True)
        return None


class GlobalSourceLibrary:
    """
    Always-on library of referenced files, persisted in SQLite.

    Example:
        >>> sources = GlobalSourceLibrary(Path("data/index/omnirag.db"), extractor)
        >>> ref = sources.add(Path("~/Documents/handbook.pdf"))
        >>> context = sources.context()
    """

    def __init__(
        self,
        db_path: Path | str,
        extractor: ContentExtractor,
        codec: Optional[BookmarkCodec] = None,
    ) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.extractor = extractor
        self.codec = codec or BookmarkCodec()
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def add(self, path: Path) -> Optional[LibraryFileRef]:
        """
        Reference a file. Returns None if it is already referenced.

        Raises:
            FileNotFoundError: If the file does not exist
            PersistenceFailure: If the reference cannot be stored
        """
        path = Path(path).expanduser()
        token = self.codec.encode(path)
        ref = LibraryFileRef(token=token, file_name=path.name, date_added=datetime.now(timezone.utc))
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT INTO global_sources (token, file_name, date_added) VALUES (?, ?, ?)",
                    (ref.token, ref.file_name, ref.date_added.isoformat()),
                )
        except sqlite3.IntegrityError:
            return None
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to add {path.name}: {e}") from e
        logger.info(f"Added global source {path.name}")
        return ref

    def remove(self, token: bytes) -> bool:
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute("DELETE FROM global_sources WHERE token = ?", (token,))
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to remove source: {e}") from e
        return cursor.rowcount > 0

    def list_refs(self) -> list[LibraryFileRef]:
        with self._lock:
            rows = self._conn.execute(
                "SELECT token, file_name, date_added FROM global_sources ORDER BY date_added"
            ).fetchall()
        return [
            LibraryFileRef(
                token=bytes(r["token"]),
                file_name=r["file_name"],
                date_added=datetime.fromisoformat(r["date_added"]),
            )
            for r in rows
        ]

    def resolve(self, ref: LibraryFileRef) -> Optional[Path]:
        """Readable path for a reference; stale tokens are logged."""
        try:
            resolution = self.codec.resolve(ref.token)
        except CorruptRecord as e:
            logger.error(f"Cannot resolve {ref.file_name}: {e.message}")
            return None
        if resolution is None:
            logger.warning(f"Source file no longer found: {ref.file_name}")
            return None
        if resolution.stale:
            logger.warning(f"Bookmark is stale for: {ref.file_name}")
        return resolution.path

    def read_all(self) -> list[tuple[str, str]]:
        """(file name, content) for every reference that can be read now."""
        contents: list[tuple[str, str]] = []
        for ref in self.list_refs():
            path = self.resolve(ref)
            if path is None:
                continue
            try:
                contents.append((ref.file_name, self.extractor.extract(path)))
            except UnreadableFile as e:
                logger.warning(e.message)
        return contents

    def context(self) -> str:
        """Context block of all readable global sources, or ''."""
        return "".join(
            f"## File: {name}\n\n{content}\n\n---\n\n" for name, content in self.read_all()
        )
