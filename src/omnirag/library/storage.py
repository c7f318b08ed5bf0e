"""
A small JSON key-value file used for library persistence.

Values are written atomically (temp file + rename) so a crash mid-write
leaves the previous contents intact.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Optional

from omnirag.errors import CorruptRecord, PersistenceFailure


class KeyValueStore:
    """JSON object on disk, read and written one key at a time."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise CorruptRecord(f"{self.path} is not valid JSON: {e}") from e
        except OSError as e:
            raise PersistenceFailure(f"Cannot read {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise CorruptRecord(f"{self.path} does not contain a JSON object")
        return data

    def get(self, key: str) -> Optional[Any]:
        """Stored value for key, or None when the key is absent."""
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        """
        Store value under key.

        Raises:
            PersistenceFailure: If the file cannot be written
        """
        with self._lock:
            data = self._read_all()
            data[key] = value
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2, ensure_ascii=False)
                os.replace(tmp, self.path)
            except OSError as e:
                raise PersistenceFailure(f"Cannot write {self.path}: {e}") from e
