"""Storage: Key-value persistence for quiz statistics, backed by SQLite."""

import sqlite3
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class MemoryStorage:
    """Dict-backed key-value store; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        self._data[key] = value

    def delete(self, key: str):
        self._data.pop(key, None)


class SQLiteStorage:
    """Stores JSON documents by key in a single SQLite table."""

    def __init__(self, db_path: str = "quiz_stats.db"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        """Initialize the SQLite database."""
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS kv (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL
                    )
                """)
                conn.commit()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to initialize stats DB at {self.db_path}: {e}")
            return
        logger.info(f"Stats DB initialized at {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None when missing or unreadable."""
        try:
            conn = sqlite3.connect(self.db_path)
            try:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to read {key}: {e}")
            return None
        return row[0] if row else None

    def set(self, key: str, value: str):
        try:
            conn = sqlite3.connect(self.db_path)
            c = conn.cursor()
            c.execute("INSERT OR REPLACE INTO kv (key, value) VALUES (?, ?)", (key, value))
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to save {key}: {e}")

    def delete(self, key: str):
        try:
            conn = sqlite3.connect(self.db_path)
            c = conn.cursor()
            c.execute("DELETE FROM kv WHERE key = ?", (key,))
            conn.commit()
            conn.close()
        except sqlite3.Error as e:
            logger.error(f"Failed to delete {key}: {e}")
