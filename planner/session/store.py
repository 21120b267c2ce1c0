"""Persisted session values (tokens and cached user) in a small SQLite table."""

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_KEY = "userData"

SESSION_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY)


class SessionStore:
    """Key/value storage for the three persisted session strings."""

    def __init__(self, db_path: str = "data/session.db"):
        """Initialize database."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Create the storage table if it doesn't exist."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS storage (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
        logger.info(f"Session store initialized at {self.db_path}")

    def get(self, key: str) -> Optional[str]:
        with sqlite3.connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM storage WHERE key = ?", (key,)
            ).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str):
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO storage (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value, datetime.utcnow().isoformat()),
            )
            conn.commit()

    def remove(self, *keys: str):
        if not keys:
            return
        placeholders = ", ".join("?" for _ in keys)
        with sqlite3.connect(self.db_path) as conn:
            conn.execute(f"DELETE FROM storage WHERE key IN ({placeholders})", keys)
            conn.commit()

    @property
    def access_token(self) -> Optional[str]:
        return self.get(ACCESS_TOKEN_KEY)

    @property
    def refresh_token(self) -> Optional[str]:
        return self.get(REFRESH_TOKEN_KEY)

    def save_tokens(self, access_token: str, refresh_token: Optional[str] = None):
        """Store a new token pair. A missing refresh token keeps the old one."""
        self.set(ACCESS_TOKEN_KEY, access_token)
        if refresh_token:
            self.set(REFRESH_TOKEN_KEY, refresh_token)

    def cached_user(self) -> Optional[dict]:
        raw = self.get(USER_KEY)
        if not raw:
            return None
        try:
            user = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Cached user data is not valid JSON, ignoring")
            return None
        return user if isinstance(user, dict) else None

    def save_user(self, user: dict):
        self.set(USER_KEY, json.dumps(user, default=str))

    def clear(self):
        """Drop all persisted credentials together."""
        self.remove(*SESSION_KEYS)
        logger.info("Cleared stored credentials")
