"""SQLite-backed key-value preference store."""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from .config import (
    CHAT_HISTORY_KEY,
    CHAT_MODEL_KEY,
    COLLECTION_VERSION,
    DEFAULT_CHAT_MODEL,
    DEFAULT_IMAGE_MODEL,
    GEMINI_KEY,
    IMAGE_MODEL_KEY,
    MISTRAL_KEY,
)
from .models import ChatSession, SessionCollection, Settings

logger = logging.getLogger(__name__)


class PreferenceStore:
    """Durable string key-value store, one row per preference."""

    def __init__(self, db_path: Path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._migrate()

    def _migrate(self):
        self.conn.executescript("""
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
        """)
        self.conn.commit()

    def get(self, key: str, default: str = "") -> str:
        row = self.conn.execute(
            "SELECT value FROM preferences WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set(self, key: str, value: str):
        """Insert or replace a preference. Committed before returning."""
        self.conn.execute(
            """INSERT INTO preferences (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                              updated_at = excluded.updated_at""",
            (key, value, datetime.now(timezone.utc).isoformat()),
        )
        self.conn.commit()

    def delete(self, key: str):
        self.conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        self.conn.commit()

    def get_serialized_collection(self, key: str = CHAT_HISTORY_KEY) -> list[ChatSession]:
        """Load a session list, falling back to an empty list on any bad data.

        Accepts the versioned envelope as well as a bare JSON array of sessions
        written before the envelope existed.
        """
        raw = self.get(key, "")
        if not raw:
            return []

        try:
            data = json.loads(raw)
            if isinstance(data, list):
                return _unique(SessionCollection(sessions=data).sessions)
            collection = SessionCollection.model_validate(data)
        except (json.JSONDecodeError, ValidationError, TypeError, RecursionError) as e:
            logger.warning("Discarding unreadable session history under %r: %s", key, e)
            return []

        if collection.version > COLLECTION_VERSION:
            logger.warning(
                "Session history under %r has unsupported version %d", key, collection.version
            )
            return []
        return _unique(collection.sessions)

    def set_serialized_collection(self, key: str, sessions: list[ChatSession]):
        collection = SessionCollection(sessions=sessions)
        self.set(key, collection.model_dump_json())

    def load_settings(self) -> Settings:
        chat_model = self.get(CHAT_MODEL_KEY, DEFAULT_CHAT_MODEL)
        image_model = self.get(IMAGE_MODEL_KEY, DEFAULT_IMAGE_MODEL)
        try:
            return Settings(
                mistral_key=self.get(MISTRAL_KEY),
                gemini_key=self.get(GEMINI_KEY),
                chat_model=chat_model,
                image_model=image_model,
            )
        except ValidationError as e:
            logger.warning("Resetting unknown model choice: %s", e)
            return Settings(mistral_key=self.get(MISTRAL_KEY), gemini_key=self.get(GEMINI_KEY))

    def save_settings(self, settings: Settings):
        self.set(MISTRAL_KEY, settings.mistral_key)
        self.set(GEMINI_KEY, settings.gemini_key)
        self.set(CHAT_MODEL_KEY, settings.chat_model)
        self.set(IMAGE_MODEL_KEY, settings.image_model)

    def get_stats(self) -> dict:
        """Summarize the stored session history."""
        sessions = self.get_serialized_collection(CHAT_HISTORY_KEY)
        msg_count = sum(len(s.messages) for s in sessions)
        stamps = [s.last_modified for s in sessions]

        return {
            "total_sessions": len(sessions),
            "total_messages": msg_count,
            "oldest_activity": _format_ts(min(stamps)) if stamps else None,
            "newest_activity": _format_ts(max(stamps)) if stamps else None,
            "avg_messages_per_session": round(msg_count / len(sessions), 1) if sessions else 0,
        }

    def close(self):
        self.conn.close()


def _unique(sessions: list[ChatSession]) -> list[ChatSession]:
    """Keep the first session for each id."""
    seen: set[str] = set()
    kept = []
    for s in sessions:
        if s.id in seen:
            logger.warning("Dropping duplicate session %s", s.id)
            continue
        seen.add(s.id)
        kept.append(s)
    return kept


def _format_ts(ts: float | None) -> str | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d")
