"""
Credit persistence — a single integer stored under a fixed key.

Read once when the session store initializes its credits; written on every
consumed credit and on an explicit credit reset.
"""

import logging
import sqlite3
from typing import Protocol

logger = logging.getLogger(__name__)

CREDITS_STORAGE_KEY = "scene_agent_credits"
DEFAULT_CREDITS = 10


class CreditStore(Protocol):
    """Persistence port for the remaining credit balance."""

    def load(self) -> int: ...

    def save(self, credits: int) -> None: ...


class InMemoryCreditStore:
    """Volatile credit store, used for tests and single-process demos."""

    def __init__(self, credits: int = DEFAULT_CREDITS):
        self._credits = credits

    def load(self) -> int:
        return self._credits

    def save(self, credits: int) -> None:
        self._credits = credits


class SqliteCreditStore:
    """
    Credit store backed by a SQLite key/value table.
    Survives process restarts when ``db_path`` points at a file.
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        default_credits: int = DEFAULT_CREDITS,
        key: str = CREDITS_STORAGE_KEY,
    ):
        self.db_path = db_path
        self.default_credits = default_credits
        self.key = key
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the settings table if it doesn't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.commit()

    def load(self) -> int:
        """Stored balance, or the default when missing or unparseable."""
        row = self._conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (self.key,)
        ).fetchone()
        if row is None:
            return self.default_credits
        try:
            credits = int(row[0])
        except (TypeError, ValueError):
            logger.warning("Ignoring corrupt credit balance %r", row[0])
            return self.default_credits
        if credits < 0:
            return self.default_credits
        return credits

    def save(self, credits: int) -> None:
        self._conn.execute(
            """
            INSERT INTO kv_store (key, value, updated_at)
            VALUES (?, ?, datetime('now'))
            ON CONFLICT(key) DO UPDATE SET
                value = excluded.value,
                updated_at = excluded.updated_at
            """,
            (self.key, str(credits)),
        )
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()
