"""
Chat sessions and their SQLite persistence.

``sources`` and ``attached_files`` are lists of file locators stored as JSON
text. ``None`` (no sources) and an empty list are both valid and stored
distinctly; stored text that is not a JSON list of strings is reported as
``CorruptRecord`` rather than silently read as "no sources".
"""

import json
import sqlite3
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from omnirag.errors import CorruptRecord, PersistenceFailure

DEFAULT_TITLE = "New Chat"
TITLE_LENGTH = 40

SCHEMA_SQL = """
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS chat_sessions (
  id TEXT PRIMARY KEY,
  title TEXT NOT NULL,
  start_date TEXT NOT NULL,
  attached_project_id TEXT,
  attached_files_json TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS chat_messages (
  id TEXT PRIMARY KEY,
  session_id TEXT NOT NULL,
  position INTEGER NOT NULL,
  content TEXT NOT NULL,
  is_user INTEGER NOT NULL,
  sources_json TEXT,
  suggested_action TEXT,
  timestamp TEXT NOT NULL,
  FOREIGN KEY(session_id) REFERENCES chat_sessions(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_chat_messages_session ON chat_messages(session_id, position);
"""


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ChatMessage:
    content: str
    is_user: bool
    sources: Optional[list[str]] = None
    suggested_action: Optional[str] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    timestamp: datetime = field(default_factory=_now)


@dataclass
class ChatSession:
    """A conversation with its attachments and message history."""

    title: str = DEFAULT_TITLE
    attached_project_id: Optional[uuid.UUID] = None
    attached_files: list[str] = field(default_factory=list)
    messages: list[ChatMessage] = field(default_factory=list)
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    start_date: datetime = field(default_factory=_now)

    def title_from(self, text: str) -> None:
        """Name an untitled session after the first user message."""
        if self.title == DEFAULT_TITLE and text.strip():
            self.title = text.strip()[:TITLE_LENGTH]


# =============================================================================
# Locator encoding
# =============================================================================


def encode_locators(locators: Optional[list[str]]) -> Optional[str]:
    if locators is None:
        return None
    return json.dumps(list(locators))


def decode_locators(raw: Optional[str]) -> Optional[list[str]]:
    """
    Decode a stored locator list.

    Raises:
        CorruptRecord: If the text is not a JSON list of strings
    """
    if raw is None:
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise CorruptRecord(f"Stored locator list is not valid JSON: {e}") from e
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise CorruptRecord("Stored locator list is not a list of strings")
    return value


# =============================================================================
# Store
# =============================================================================


class SessionStore:
    """
    SQLite-backed chat session store.

    A session and its messages are written in one transaction, so a reader
    never sees a partially saved conversation.
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def save(self, session: ChatSession) -> None:
        session_id = str(session.id)
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO chat_sessions "
                    "(id, title, start_date, attached_project_id, attached_files_json) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        session_id,
                        session.title,
                        session.start_date.isoformat(),
                        str(session.attached_project_id) if session.attached_project_id else None,
                        encode_locators(session.attached_files),
                    ),
                )
                self._conn.execute("DELETE FROM chat_messages WHERE session_id = ?", (session_id,))
                self._conn.executemany(
                    "INSERT INTO chat_messages "
                    "(id, session_id, position, content, is_user, sources_json, suggested_action, timestamp) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        (
                            str(m.id),
                            session_id,
                            position,
                            m.content,
                            int(m.is_user),
                            encode_locators(m.sources),
                            m.suggested_action,
                            m.timestamp.isoformat(),
                        )
                        for position, m in enumerate(session.messages)
                    ],
                )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to save chat '{session.title}': {e}") from e

    def load(self, session_id: uuid.UUID) -> Optional[ChatSession]:
        """
        Load a session with its messages.

        Raises:
            CorruptRecord: If stored locator lists cannot be decoded
        """
        with self._lock:
            row = self._conn.execute(
                "SELECT * FROM chat_sessions WHERE id = ?", (str(session_id),)
            ).fetchone()
            if row is None:
                return None
            message_rows = self._conn.execute(
                "SELECT * FROM chat_messages WHERE session_id = ? ORDER BY position",
                (str(session_id),),
            ).fetchall()

        return ChatSession(
            id=uuid.UUID(row["id"]),
            title=row["title"],
            start_date=datetime.fromisoformat(row["start_date"]),
            attached_project_id=uuid.UUID(row["attached_project_id"]) if row["attached_project_id"] else None,
            attached_files=decode_locators(row["attached_files_json"]) or [],
            messages=[
                ChatMessage(
                    id=uuid.UUID(m["id"]),
                    content=m["content"],
                    is_user=bool(m["is_user"]),
                    sources=decode_locators(m["sources_json"]),
                    suggested_action=m["suggested_action"],
                    timestamp=datetime.fromisoformat(m["timestamp"]),
                )
                for m in message_rows
            ],
        )

    def list_sessions(self) -> list[tuple[uuid.UUID, str, datetime]]:
        """(id, title, start date) for every session, newest first."""
        with self._lock:
            rows = self._conn.execute(
                "SELECT id, title, start_date FROM chat_sessions ORDER BY start_date DESC"
            ).fetchall()
        return [(uuid.UUID(r["id"]), r["title"], datetime.fromisoformat(r["start_date"])) for r in rows]

    def delete(self, session_id: uuid.UUID) -> bool:
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute("DELETE FROM chat_sessions WHERE id = ?", (str(session_id),))
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to delete chat {session_id}: {e}") from e
        return cursor.rowcount > 0
