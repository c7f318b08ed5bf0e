"""
SQLite persistence for generated quizzes.
"""

import json
import sqlite3
import threading
import uuid
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError

from omnirag.errors import CorruptRecord, PersistenceFailure

if TYPE_CHECKING:
    from omnirag.tasks.exam import Quiz


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS quizzes (
  id TEXT PRIMARY KEY,
  project_id TEXT,
  name TEXT NOT NULL,
  questions_json TEXT NOT NULL,
  created_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_quizzes_project ON quizzes(project_id);
"""


class QuizStore:
    def __init__(self, db_path: Path | str) -> None:
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(SCHEMA_SQL)
        self._conn.commit()

    def save(self, quiz: "Quiz") -> None:
        questions = json.dumps([q.model_dump() for q in quiz.questions])
        try:
            with self._lock, self._conn:
                self._conn.execute(
                    "INSERT OR REPLACE INTO quizzes (id, project_id, name, questions_json, created_at) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        str(quiz.id),
                        str(quiz.source_project_id) if quiz.source_project_id else None,
                        quiz.name,
                        questions,
                        quiz.date_created.isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise PersistenceFailure(f"Failed to save quiz '{quiz.name}': {e}") from e

    def list_quizzes(self, project_id: Optional[uuid.UUID] = None) -> list["Quiz"]:
        """
        Saved quizzes, oldest first, optionally for one project.

        Raises:
            CorruptRecord: If a stored quiz cannot be decoded
        """
        from omnirag.tasks.exam import Quiz

        sql = "SELECT * FROM quizzes"
        params: tuple = ()
        if project_id is not None:
            sql += " WHERE project_id = ?"
            params = (str(project_id),)
        with self._lock:
            rows = self._conn.execute(sql + " ORDER BY created_at", params).fetchall()

        quizzes = []
        for r in rows:
            try:
                quizzes.append(
                    Quiz(
                        id=uuid.UUID(r["id"]),
                        source_project_id=uuid.UUID(r["project_id"]) if r["project_id"] else None,
                        name=r["name"],
                        questions=json.loads(r["questions_json"]),
                        date_created=datetime.fromisoformat(r["created_at"]),
                    )
                )
            except (ValueError, ValidationError) as e:
                raise CorruptRecord(f"Stored quiz {r['id']} cannot be decoded: {e}") from e
        return quizzes

    def close(self) -> None:
        with self._lock:
            self._conn.close()
